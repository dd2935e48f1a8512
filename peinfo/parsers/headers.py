"""
PE Header Decoder
==================

Locates the PE header through the DOS stub pointer and decodes the
image header, the bitness-specific optional header, and the 16-slot
data-directory array that follows it.

Layout (offsets relative to the PE header)::

    +0x00  signature          "PE\\0\\0"
    +0x04  COFF file header   20 bytes
    +0x18  optional header    magic, linker version ... BaseOfCode
    +0x30  PE32:  72 bytes    (BaseOfData, 32-bit ImageBase, ...)
           PE32+: 88 bytes    (64-bit ImageBase, ...)
           16 x (RVA, Size)   data directories

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
"""

from __future__ import annotations

import struct

from peinfo.core.errors import InvalidMagic
from peinfo.core.models import (
    Bitness,
    DataDirectory,
    ImageHeader,
    OptionalHeader32,
    OptionalHeader64,
    PEHeaders,
)
from peinfo.parsers.reader import RawReader


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PE_HEADER_POINTER_OFFSET: int = 0x3C
PE_SIGNATURE: int = 0x00004550  # b"PE\0\0" little-endian

PE32_MAGIC: int = 0x10B
PE32PLUS_MAGIC: int = 0x20B

# Offset of the optional-header magic from the PE header: signature + COFF.
OPTIONAL_HEADER_OFFSET: int = 24

NUM_DATA_DIRECTORIES: int = 16

# Signature, COFF header and the bitness-independent optional-header prefix
_IMAGE_HEADER_FMT: str = "<IHHIIIHHHBBIIIII"
IMAGE_HEADER_SIZE: int = struct.calcsize(_IMAGE_HEADER_FMT)  # 48

_OPT32_FMT: str = "<IIIIHHHHHHIIIIHHIIIIII"
_OPT64_FMT: str = "<QIIHHHHHHIIIIHHQQQQII"
_DIRECTORY_FMT: str = "<" + "II" * NUM_DATA_DIRECTORIES

_OPTIONAL_FIELDS: tuple[str, ...] = (
    "image_base", "section_alignment", "file_alignment",
    "major_os_version", "minor_os_version",
    "major_image_version", "minor_image_version",
    "major_subsystem_version", "minor_subsystem_version",
    "win32_version_value", "size_of_image", "size_of_headers",
    "checksum", "subsystem", "dll_characteristics",
    "size_of_stack_reserve", "size_of_stack_commit",
    "size_of_heap_reserve", "size_of_heap_commit",
    "loader_flags", "number_of_rva_and_sizes",
)

_BITNESS_BY_MAGIC: dict[int, Bitness] = {
    PE32_MAGIC: Bitness.PE32,
    PE32PLUS_MAGIC: Bitness.PE32_PLUS,
}


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

def read_pe_offset(reader: RawReader) -> int:
    """Return the file offset of the PE header stored at ``0x3C``."""
    return reader.unpack("<I", PE_HEADER_POINTER_OFFSET, what="PE header pointer")[0]


def decode_image_header(reader: RawReader, pe_offset: int) -> ImageHeader:
    """Verify the signature and decode the fixed image header.

    Raises:
        InvalidMagic: If the 4-byte signature is not ``PE\\0\\0``.
        TruncatedInput: If the file ends inside the header.
    """
    signature = reader.unpack("<I", pe_offset, what="PE signature")[0]
    if signature != PE_SIGNATURE:
        raise InvalidMagic(pe_offset, PE_SIGNATURE, signature)

    fields = reader.unpack(_IMAGE_HEADER_FMT, pe_offset, what="image header")
    return ImageHeader(
        magic=fields[0],
        machine=fields[1],
        number_of_sections=fields[2],
        time_date_stamp=fields[3],
        pointer_to_symbol_table=fields[4],
        number_of_symbols=fields[5],
        size_of_optional_header=fields[6],
        characteristics=fields[7],
        optional_magic=fields[8],
        major_linker_version=fields[9],
        minor_linker_version=fields[10],
        size_of_code=fields[11],
        size_of_initialized_data=fields[12],
        size_of_uninitialized_data=fields[13],
        entry_point_rva=fields[14],
        base_of_code=fields[15],
    )


def bitness_for(optional_magic: int) -> Bitness | None:
    """Map an optional-header magic to a :class:`Bitness`, or ``None``."""
    return _BITNESS_BY_MAGIC.get(optional_magic)


def decode_optional_header(
    reader: RawReader, offset: int, bitness: Bitness
) -> OptionalHeader32 | OptionalHeader64:
    """Decode the bitness-specific remainder of the optional header."""
    if bitness is Bitness.PE32_PLUS:
        fields = reader.unpack(_OPT64_FMT, offset, what="PE32+ optional header")
        return OptionalHeader64(**dict(zip(_OPTIONAL_FIELDS, fields)))

    fields = reader.unpack(_OPT32_FMT, offset, what="PE32 optional header")
    base_of_data, rest = fields[0], fields[1:]
    return OptionalHeader32(
        base_of_data=base_of_data,
        **dict(zip(_OPTIONAL_FIELDS, rest)),
    )


def optional_header_size(bitness: Bitness) -> int:
    fmt = _OPT64_FMT if bitness is Bitness.PE32_PLUS else _OPT32_FMT
    return struct.calcsize(fmt)


def decode_data_directories(reader: RawReader, offset: int) -> list[DataDirectory]:
    """Decode exactly 16 positional ``(rva, size)`` pairs at *offset*."""
    values = reader.unpack(_DIRECTORY_FMT, offset, what="data directories")
    return [
        DataDirectory(index=i, rva=values[2 * i], size=values[2 * i + 1])
        for i in range(NUM_DATA_DIRECTORIES)
    ]


def decode_headers(reader: RawReader) -> PEHeaders:
    """Run the full header decode.

    For an unrecognised optional-header magic the image header is still
    returned, with ``bitness``/``optional_header`` left as ``None`` and
    no data directories; the caller decides how to report it.
    """
    pe_offset = read_pe_offset(reader)
    image_header = decode_image_header(reader, pe_offset)

    bitness = bitness_for(image_header.optional_magic)
    if bitness is None:
        return PEHeaders(pe_offset=pe_offset, image_header=image_header)

    opt_offset = pe_offset + IMAGE_HEADER_SIZE
    optional_header = decode_optional_header(reader, opt_offset, bitness)
    directories = decode_data_directories(
        reader, opt_offset + optional_header_size(bitness)
    )

    return PEHeaders(
        pe_offset=pe_offset,
        image_header=image_header,
        bitness=bitness,
        optional_header=optional_header,
        data_directories=directories,
    )
