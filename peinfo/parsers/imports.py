"""
Import Table Walker
====================

Decodes the import directory from the in-memory bytes of the section
that contains it.

Neither array carries a count.  The descriptor array ends at the first
entry whose name RVA is zero and each thunk array ends at the first
zero thunk.  Both walks are lazy generators bounded by the section
blob: running off the end of the section without meeting the sentinel
raises :class:`~peinfo.core.errors.TruncatedInput` instead of scanning
on.

Thunk layout (PE32 shown; PE32+ uses 8-byte thunks and bit 63)::

    bit 31 set   -> import by ordinal, ordinal = value & 0x7FFFFFFF
    bit 31 clear -> RVA of { u16 hint; char name[] }
"""

from __future__ import annotations

import struct
from typing import Iterator

from peinfo.core.models import (
    Bitness,
    ImportDescriptor,
    ImportedModule,
    ImportedSymbol,
    ImportKind,
)
from peinfo.parsers.reader import SectionBlob


_DESCRIPTOR_FMT: str = "<IIHHII"
IMPORT_DESCRIPTOR_SIZE: int = struct.calcsize(_DESCRIPTOR_FMT)  # 20

_THUNK_FMT: dict[Bitness, str] = {
    Bitness.PE32: "<I",
    Bitness.PE32_PLUS: "<Q",
}
_ORDINAL_FLAG: dict[Bitness, int] = {
    Bitness.PE32: 1 << 31,
    Bitness.PE32_PLUS: 1 << 63,
}

HINT_SIZE: int = 2


def iter_import_descriptors(blob: SectionBlob, rva: int) -> Iterator[ImportDescriptor]:
    """Yield live descriptors starting at *rva* up to the zero-name terminator."""
    while True:
        fields = blob.unpack(_DESCRIPTOR_FMT, rva, what="import descriptor")
        descriptor = ImportDescriptor(
            rva=rva,
            import_flags=fields[0],
            time_date_stamp=fields[1],
            major_version=fields[2],
            minor_version=fields[3],
            name_rva=fields[4],
            import_table_rva=fields[5],
        )
        if descriptor.is_terminator:
            return
        yield descriptor
        rva += IMPORT_DESCRIPTOR_SIZE


def iter_thunks(
    blob: SectionBlob, table_rva: int, bitness: Bitness
) -> Iterator[tuple[int, int]]:
    """Yield ``(thunk_rva, value)`` pairs until the zero thunk."""
    fmt = _THUNK_FMT[bitness]
    width = bitness.thunk_size
    thunk_rva = table_rva
    while True:
        value = blob.unpack(fmt, thunk_rva, what="import thunk")[0]
        if value == 0:
            return
        yield thunk_rva, value
        thunk_rva += width


def decode_thunk(
    blob: SectionBlob,
    thunk_rva: int,
    value: int,
    bitness: Bitness,
    image_base: int,
) -> ImportedSymbol:
    """Classify one non-zero thunk as an ordinal or a name import."""
    flag = _ORDINAL_FLAG[bitness]
    address = thunk_rva + image_base

    if value & flag:
        return ImportedSymbol(
            kind=ImportKind.ORDINAL,
            thunk_rva=thunk_rva,
            address=address,
            raw_value=value,
            ordinal=value & ~flag,
        )

    hint = blob.unpack("<H", value, what="import hint")[0]
    name = blob.read_asciiz(value + HINT_SIZE, what="import name")
    return ImportedSymbol(
        kind=ImportKind.NAME,
        thunk_rva=thunk_rva,
        address=address,
        raw_value=value,
        hint=hint,
        name=name,
    )


def walk_imports(
    blob: SectionBlob,
    directory_rva: int,
    bitness: Bitness,
    image_base: int,
) -> list[ImportedModule]:
    """Decode every imported module and its symbols.

    Args:
        blob: Bytes of the section holding the import directory.
        directory_rva: RVA of the first import descriptor.
        bitness: Selects 4- or 8-byte thunks.
        image_base: Added to thunk RVAs for display addresses.

    Returns:
        Modules in descriptor order, each with symbols in thunk order.
    """
    modules: list[ImportedModule] = []
    for descriptor in iter_import_descriptors(blob, directory_rva):
        name = blob.read_asciiz(descriptor.name_rva, what="module name")
        symbols: list[ImportedSymbol] = []
        if descriptor.import_table_rva:
            for thunk_rva, value in iter_thunks(blob, descriptor.import_table_rva, bitness):
                symbols.append(decode_thunk(blob, thunk_rva, value, bitness, image_base))
        modules.append(ImportedModule(name=name, descriptor=descriptor, symbols=symbols))
    return modules
