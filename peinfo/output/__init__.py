"""
PEInfo Output
==============

Output rendering modules for analysis results.

- ``console`` -- Rich-based console display
- ``report``  -- JSON report generation
"""

from peinfo.output.console import PEInfoConsoleOutput
from peinfo.output.report import PEInfoReportGenerator

__all__ = [
    "PEInfoConsoleOutput",
    "PEInfoReportGenerator",
]
