"""
PEInfo Error Kinds
===================

Exception hierarchy raised by the PE decoders.

Two families exist:

* :class:`StructuralError` -- the file cannot be decoded at all
  (:class:`TruncatedInput`, :class:`InvalidMagic`).  These abort the
  whole analysis; no partial result is exposed.
* :class:`TableError` -- a single directory could not be decoded
  (:class:`TableNotPresent`, :class:`UnsupportedExportLayout`).  The
  engine records these as diagnostics and carries on with the other
  requested tables.

:class:`UnsupportedImage` sits between the two: the headers are still
reported, but every section or directory operation raises it.

Every exception keeps the offending offset / RVA and the expected vs.
actual values in :attr:`PEInfoError.context`.
"""

from __future__ import annotations

from typing import Any


class PEInfoError(Exception):
    """Base class for all decoding errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message: str = message
        self.context: dict[str, Any] = context

    @property
    def kind(self) -> str:
        """Short error kind name, e.g. ``"TruncatedInput"``."""
        return type(self).__name__


# ---------------------------------------------------------------------------
# Structural (fatal) errors
# ---------------------------------------------------------------------------

class StructuralError(PEInfoError):
    """The image layout is broken; analysis cannot continue."""


class TruncatedInput(StructuralError):
    """Fewer bytes are available than a fixed-size structure requires."""

    def __init__(
        self,
        offset: int,
        requested: int,
        available: int,
        *,
        what: str = "data",
    ) -> None:
        super().__init__(
            f"Truncated input reading {what}: needed {requested} byte(s) "
            f"at offset 0x{offset:x}, only {max(available, 0)} available",
            offset=offset,
            requested=requested,
            available=available,
            what=what,
        )
        self.offset = offset
        self.requested = requested
        self.available = available


class InvalidMagic(StructuralError):
    """The PE signature does not match ``PE\\0\\0``."""

    def __init__(self, offset: int, expected: int, actual: int) -> None:
        super().__init__(
            f"Bad PE signature at offset 0x{offset:x}: "
            f"expected 0x{expected:08x}, found 0x{actual:08x}",
            offset=offset,
            expected=expected,
            actual=actual,
        )
        self.offset = offset
        self.expected = expected
        self.actual = actual


class InputTooLarge(PEInfoError):
    """The input exceeds the configured ``max_file_size``."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"File too large: {size:,} bytes (max: {limit:,} bytes)",
            size=size,
            limit=limit,
        )


class UnsupportedImage(PEInfoError):
    """Optional-header magic is neither PE32 (0x10B) nor PE32+ (0x20B)."""

    def __init__(self, magic: int, *, operation: str | None = None) -> None:
        msg = f"Unsupported image: optional header magic 0x{magic:x}"
        if operation:
            msg += f" (cannot {operation})"
        super().__init__(msg, magic=magic, operation=operation)
        self.magic = magic


# ---------------------------------------------------------------------------
# Table-scoped (non-fatal) errors
# ---------------------------------------------------------------------------

class TableError(PEInfoError):
    """A single directory table could not be decoded."""

    def __init__(self, message: str, *, table: str, **context: Any) -> None:
        super().__init__(message, table=table, **context)
        self.table = table


class TableNotPresent(TableError):
    """The directory RVA does not fall inside any section."""

    def __init__(self, table: str, rva: int) -> None:
        super().__init__(
            f"Can't find {table} table: RVA 0x{rva:x} is not mapped by any section",
            table=table,
            rva=rva,
        )
        self.rva = rva


class UnsupportedExportLayout(TableError):
    """Export address-table and name-pointer counts disagree."""

    def __init__(
        self,
        number_of_functions: int,
        number_of_names: int,
        *,
        rva: int,
        directory: Any = None,
        module_name: str = "",
    ) -> None:
        super().__init__(
            f"Unsupported export table ({number_of_functions:#x} != "
            f"{number_of_names:#x}): address-table and name-pointer "
            f"counts differ",
            table="export",
            rva=rva,
            expected=number_of_functions,
            actual=number_of_names,
        )
        self.rva = rva
        self.number_of_functions = number_of_functions
        self.number_of_names = number_of_names
        self.directory = directory
        self.module_name = module_name
