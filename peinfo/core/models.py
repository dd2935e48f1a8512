"""
PEInfo Data Models
===================

Pydantic-based data models for the structures decoded from a Portable
Executable image: the image and optional headers, the data-directory
array, the section table, and the import / export directories.

Header and table records are frozen value objects; the only mutable
model is :class:`AnalysisResult`, which the engine fills in step by
step during a single run.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pietrek, M. (2002). An In-Depth Look into the Win32 Portable
      Executable File Format. MSDN Magazine.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Bitness(int, enum.Enum):
    """Address width selected by the optional-header magic."""
    PE32 = 32
    PE32_PLUS = 64

    @property
    def label(self) -> str:
        return "PE32+" if self is Bitness.PE32_PLUS else "PE32"

    @property
    def thunk_size(self) -> int:
        """Width in bytes of one import thunk."""
        return 8 if self is Bitness.PE32_PLUS else 4


class DirectoryEntry(enum.IntEnum):
    """Positional index of each data-directory slot."""
    EXPORT = 0
    IMPORT = 1
    RESOURCE = 2
    EXCEPTION = 3
    CERTIFICATE = 4
    BASE_RELOCATION = 5
    DEBUG = 6
    ARCHITECTURE = 7
    GLOBAL_PTR = 8
    TLS = 9
    LOAD_CONFIG = 10
    BOUND_IMPORT = 11
    IAT = 12
    DELAY_IMPORT = 13
    CLR_RUNTIME = 14
    RESERVED = 15


class ImportKind(str, enum.Enum):
    """How an imported symbol is referenced."""
    NAME = "name"
    ORDINAL = "ordinal"


class Operation(str, enum.Enum):
    """Optional operations a caller may request after the header decode."""
    SECTIONS = "sections"
    IMPORTS = "imports"
    EXPORTS = "exports"


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

_MACHINE_NAMES: dict[int, str] = {
    0x014C: "i386",
    0x8664: "x86-64",
    0x0200: "IA-64",
    0x01C0: "ARM",
    0x01C4: "ARM Thumb-2",
    0xAA64: "AArch64",
}

_SUBSYSTEM_NAMES: dict[int, str] = {
    0: "Unknown",
    1: "Native",
    2: "Windows GUI",
    3: "Windows Console",
    7: "POSIX Console",
    9: "Windows CE GUI",
    10: "EFI Application",
    11: "EFI Boot Service Driver",
    12: "EFI Runtime Driver",
    13: "EFI ROM",
    14: "Xbox",
    16: "Boot Application",
}

_CHARACTERISTIC_NAMES: dict[int, str] = {
    0x0001: "RELOCS_STRIPPED",
    0x0002: "EXECUTABLE_IMAGE",
    0x0004: "LINE_NUMS_STRIPPED",
    0x0008: "LOCAL_SYMS_STRIPPED",
    0x0020: "LARGE_ADDRESS_AWARE",
    0x0100: "32BIT_MACHINE",
    0x0200: "DEBUG_STRIPPED",
    0x0400: "REMOVABLE_RUN_FROM_SWAP",
    0x0800: "NET_RUN_FROM_SWAP",
    0x1000: "SYSTEM",
    0x2000: "DLL",
    0x4000: "UP_SYSTEM_ONLY",
}

IMAGE_FILE_DLL: int = 0x2000

IMAGE_SCN_CNT_CODE: int = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA: int = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA: int = 0x00000080
IMAGE_SCN_MEM_EXECUTE: int = 0x20000000
IMAGE_SCN_MEM_READ: int = 0x40000000
IMAGE_SCN_MEM_WRITE: int = 0x80000000


_FROZEN = ConfigDict(frozen=True, ser_json_bytes="base64")


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

class ImageHeader(BaseModel):
    """PE signature, COFF file header and the optional-header prefix.

    The prefix (``optional_magic`` through ``base_of_code``) is laid out
    identically for both bitness variants, so it is decoded together
    with the COFF header.

    Attributes:
        magic: PE signature as a little-endian u32 (``0x00004550``).
        machine: Target CPU type.
        number_of_sections: Section count.
        size_of_optional_header: Declared optional-header size in bytes.
        characteristics: COFF characteristic flags.
        optional_magic: ``0x10B`` (PE32) or ``0x20B`` (PE32+).
        entry_point_rva: RVA of the entry point.
    """
    model_config = _FROZEN

    magic: int
    machine: int
    number_of_sections: int
    time_date_stamp: int
    pointer_to_symbol_table: int
    number_of_symbols: int
    size_of_optional_header: int
    characteristics: int
    optional_magic: int
    major_linker_version: int
    minor_linker_version: int
    size_of_code: int
    size_of_initialized_data: int
    size_of_uninitialized_data: int
    entry_point_rva: int
    base_of_code: int

    @property
    def machine_name(self) -> str:
        return _MACHINE_NAMES.get(self.machine, "unknown")

    @property
    def timestamp(self) -> Optional[datetime]:
        """Link time as a UTC datetime, or ``None`` when zero."""
        if self.time_date_stamp == 0:
            return None
        try:
            return datetime.fromtimestamp(self.time_date_stamp, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None

    @property
    def is_dll(self) -> bool:
        return bool(self.characteristics & IMAGE_FILE_DLL)

    @property
    def characteristic_flags(self) -> list[str]:
        return [
            name for bit, name in _CHARACTERISTIC_NAMES.items()
            if self.characteristics & bit
        ]


class OptionalHeader(BaseModel):
    """Fields shared by both optional-header variants."""
    model_config = _FROZEN

    image_base: int
    section_alignment: int
    file_alignment: int
    major_os_version: int
    minor_os_version: int
    major_image_version: int
    minor_image_version: int
    major_subsystem_version: int
    minor_subsystem_version: int
    win32_version_value: int
    size_of_image: int
    size_of_headers: int
    checksum: int
    subsystem: int
    dll_characteristics: int
    size_of_stack_reserve: int
    size_of_stack_commit: int
    size_of_heap_reserve: int
    size_of_heap_commit: int
    loader_flags: int
    number_of_rva_and_sizes: int

    @property
    def subsystem_name(self) -> str:
        return _SUBSYSTEM_NAMES.get(self.subsystem, f"Unknown({self.subsystem})")


class OptionalHeader32(OptionalHeader):
    """PE32 optional header; carries ``base_of_data``."""
    base_of_data: int


class OptionalHeader64(OptionalHeader):
    """PE32+ optional header; 64-bit image base, stack and heap sizes."""


class DataDirectory(BaseModel):
    """One ``(rva, size)`` slot of the data-directory array."""
    model_config = _FROZEN

    index: int = Field(ge=0, le=15)
    rva: int
    size: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def entry(self) -> DirectoryEntry:
        return DirectoryEntry(self.index)

    @property
    def is_empty(self) -> bool:
        return self.rva == 0 and self.size == 0


class PEHeaders(BaseModel):
    """Everything the header decoder produces.

    ``bitness`` and ``optional_header`` are ``None`` (and
    ``data_directories`` is empty) for images whose optional-header magic
    is not recognised.
    """
    model_config = _FROZEN

    pe_offset: int
    image_header: ImageHeader
    bitness: Optional[Bitness] = None
    optional_header: Optional[Union[OptionalHeader32, OptionalHeader64]] = None
    data_directories: list[DataDirectory] = Field(default_factory=list)

    @property
    def is_supported(self) -> bool:
        return self.bitness is not None and self.optional_header is not None

    @property
    def image_base(self) -> int:
        return self.optional_header.image_base if self.optional_header else 0

    @property
    def entry_point_va(self) -> int:
        return self.image_header.entry_point_rva + self.image_base

    def directory(self, entry: DirectoryEntry) -> DataDirectory:
        """Return the data-directory slot for *entry*."""
        return self.data_directories[int(entry)]


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class Section(BaseModel):
    """A section-table record, kept in file order.

    ``raw_name`` is the 8-byte name field exactly as stored; it is not
    guaranteed to be NUL-terminated.  :attr:`name` bounds it first.
    """
    model_config = _FROZEN

    index: int
    raw_name: bytes = Field(min_length=8, max_length=8)
    virtual_size: int
    virtual_address: int
    size_of_raw_data: int
    pointer_to_raw_data: int
    pointer_to_relocations: int = 0
    pointer_to_linenumbers: int = 0
    number_of_relocations: int = 0
    number_of_linenumbers: int = 0
    characteristics: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def name(self) -> str:
        end = self.raw_name.find(b"\x00")
        bounded = self.raw_name if end == -1 else self.raw_name[:end]
        return bounded.decode("ascii", errors="replace")

    @property
    def flags(self) -> str:
        """Characteristics as a short string such as ``"R X CODE"``."""
        parts: list[str] = []
        if self.characteristics & IMAGE_SCN_MEM_READ:
            parts.append("R")
        if self.characteristics & IMAGE_SCN_MEM_WRITE:
            parts.append("W")
        if self.characteristics & IMAGE_SCN_MEM_EXECUTE:
            parts.append("X")
        if self.characteristics & IMAGE_SCN_CNT_CODE:
            parts.append("CODE")
        if self.characteristics & IMAGE_SCN_CNT_INITIALIZED_DATA:
            parts.append("IDATA")
        if self.characteristics & IMAGE_SCN_CNT_UNINITIALIZED_DATA:
            parts.append("UDATA")
        return " ".join(parts) if parts else "-"

    def contains(self, rva: int) -> bool:
        """``True`` when *rva* lies in ``[virtual_address, +virtual_size)``."""
        return self.virtual_address <= rva < self.virtual_address + self.virtual_size


class Location(BaseModel):
    """Where an RVA lands on disk."""
    model_config = _FROZEN

    rva: int
    file_offset: int
    section_index: int
    section_offset: int
    remaining: int


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

class ImportDescriptor(BaseModel):
    """An import directory entry (one per imported module)."""
    model_config = _FROZEN

    rva: int
    import_flags: int
    time_date_stamp: int
    major_version: int
    minor_version: int
    name_rva: int
    import_table_rva: int

    @property
    def is_terminator(self) -> bool:
        return self.name_rva == 0


class ImportedSymbol(BaseModel):
    """A single decoded thunk.

    Attributes:
        kind: Name or ordinal import.
        thunk_rva: RVA of the thunk slot itself.
        address: ``thunk_rva + image_base``.
        raw_value: The thunk value as stored.
        ordinal: Ordinal for ordinal imports (high bit cleared).
        hint: Export-name-table hint for name imports.
        name: Symbol name for name imports.
    """
    model_config = _FROZEN

    kind: ImportKind
    thunk_rva: int
    address: int
    raw_value: int
    ordinal: Optional[int] = None
    hint: Optional[int] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.kind is ImportKind.ORDINAL:
            return f"ordinal #{self.ordinal}"
        return self.name or ""


class ImportedModule(BaseModel):
    model_config = _FROZEN

    name: str
    descriptor: ImportDescriptor
    symbols: list[ImportedSymbol] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

class ExportDirectory(BaseModel):
    """The single export directory record."""
    model_config = _FROZEN

    rva: int
    flags: int
    time_date_stamp: int
    major_version: int
    minor_version: int
    name_rva: int
    ordinal_base: int
    number_of_functions: int
    number_of_names: int
    address_table_rva: int
    name_pointer_table_rva: int
    ordinal_table_rva: int


class ExportEntry(BaseModel):
    """An exported symbol reached through the name-pointer table.

    ``ordinal`` is the raw ordinal-table value that indexes the address
    table; ``biased_ordinal`` adds the directory's ordinal base.
    """
    model_config = _FROZEN

    name: str
    name_rva: int
    ordinal: int
    biased_ordinal: int
    function_rva: int
    address: int
    forwarder: Optional[str] = None


class ExportTable(BaseModel):
    model_config = _FROZEN

    directory: ExportDirectory
    module_name: str
    entries: list[ExportEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate analysis result
# ---------------------------------------------------------------------------

class Diagnostic(BaseModel):
    """A non-fatal problem reported for one table or operation."""
    model_config = _FROZEN

    kind: str
    message: str
    table: str = ""
    rva: Optional[int] = None


class AnalysisResult(BaseModel):
    """Complete result of one analysis run.

    Attributes:
        path: Display path of the analysed input.
        size: Input size in bytes.
        headers: Decoded headers (always present).
        sections: Section table, when requested.
        imports: Imported modules, when requested and decodable.
        exports: Export table, when requested and present.  For an
            unsupported layout the directory is kept with no entries.
        diagnostics: Non-fatal problems in the order they occurred.
    """
    path: str = ""
    size: int = 0
    headers: PEHeaders
    sections: Optional[list[Section]] = None
    imports: Optional[list[ImportedModule]] = None
    exports: Optional[ExportTable] = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def import_count(self) -> int:
        return sum(len(m.symbols) for m in self.imports or [])

    @property
    def export_count(self) -> int:
        return len(self.exports.entries) if self.exports else 0
