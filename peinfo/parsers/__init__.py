"""
PEInfo Parsers
===============

Bounded readers and the PE structure decoders built on them.
"""

from peinfo.parsers.reader import RawReader, SectionBlob, open_reader
from peinfo.parsers.sections import RvaResolver

__all__ = [
    "RawReader",
    "SectionBlob",
    "open_reader",
    "RvaResolver",
]
