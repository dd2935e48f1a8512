"""
PEInfo -- Windows PE Image Inspector
=====================================

Static decoder for Portable Executable images.  Reads the PE header,
the optional header and data directories, the section table, and the
import and export directories straight from file bytes, with every
read bounds-checked against a possibly truncated or hostile input.

Capabilities:
    - PE32 and PE32+ header decoding
    - Section table listing and RVA to file-offset resolution
    - Import directory walk (name and ordinal imports)
    - Export directory walk (names, ordinals, addresses, forwarders)
    - Rich console display and JSON report generation

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

__version__ = "1.0.0"
__all__ = [
    "PEInfoEngine",
    "PEAnalysis",
    "AnalysisResult",
    "PEInfoConsoleOutput",
    "PEInfoReportGenerator",
]
