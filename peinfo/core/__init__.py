"""
PEInfo Core Module
===================

Contains the analysis engine, the data models and the error kinds.
"""

from peinfo.core.engine import PEAnalysis, PEInfoEngine
from peinfo.core.errors import (
    InvalidMagic,
    PEInfoError,
    StructuralError,
    TableError,
    TableNotPresent,
    TruncatedInput,
    UnsupportedExportLayout,
    UnsupportedImage,
)
from peinfo.core.models import AnalysisResult, Operation

__all__ = [
    "PEAnalysis",
    "PEInfoEngine",
    "AnalysisResult",
    "Operation",
    "PEInfoError",
    "StructuralError",
    "TruncatedInput",
    "InvalidMagic",
    "UnsupportedImage",
    "TableError",
    "TableNotPresent",
    "UnsupportedExportLayout",
]
