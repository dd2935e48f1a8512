"""
Export Table Walker
====================

Decodes the export directory and its three parallel tables from the
in-memory bytes of the section that contains it.

Only the layout where every address-table entry has a name is decoded:
``number_of_functions`` must equal ``number_of_names``.  Exports by
ordinal only are reported as :class:`UnsupportedExportLayout`.

The address table is indexed by the raw value read from the ordinal
table, without subtracting ``ordinal_base``.  Images with a non-zero
ordinal base that rely on the biased form are decoded the same way.
"""

from __future__ import annotations

import struct

from peinfo.core.errors import TruncatedInput, UnsupportedExportLayout
from peinfo.core.models import ExportDirectory, ExportEntry, ExportTable
from peinfo.parsers.reader import SectionBlob


_DIRECTORY_FMT: str = "<IIHHIIIIIII"
EXPORT_DIRECTORY_SIZE: int = struct.calcsize(_DIRECTORY_FMT)  # 40


def decode_export_directory(blob: SectionBlob, rva: int) -> ExportDirectory:
    fields = blob.unpack(_DIRECTORY_FMT, rva, what="export directory")
    return ExportDirectory(
        rva=rva,
        flags=fields[0],
        time_date_stamp=fields[1],
        major_version=fields[2],
        minor_version=fields[3],
        name_rva=fields[4],
        ordinal_base=fields[5],
        number_of_functions=fields[6],
        number_of_names=fields[7],
        address_table_rva=fields[8],
        name_pointer_table_rva=fields[9],
        ordinal_table_rva=fields[10],
    )


def walk_exports(
    blob: SectionBlob,
    directory_rva: int,
    image_base: int,
    directory_size: int = 0,
) -> ExportTable:
    """Decode the export directory at *directory_rva*.

    Args:
        blob: Bytes of the section holding the export directory.
        directory_rva: RVA of the export directory record.
        image_base: Added to function RVAs for display addresses.
        directory_size: Declared size of the export data directory; a
            function RVA falling inside ``[directory_rva, +size)`` is a
            forwarder string.

    Raises:
        UnsupportedExportLayout: If the address-table and name-pointer
            counts differ.  The decoded directory and module name ride
            along on the exception.
    """
    directory = decode_export_directory(blob, directory_rva)

    if directory.number_of_functions != directory.number_of_names:
        # Best-effort name for display; the layout error takes precedence.
        try:
            module_name = blob.read_asciiz(directory.name_rva, what="export module name")
        except TruncatedInput:
            module_name = ""
        raise UnsupportedExportLayout(
            directory.number_of_functions,
            directory.number_of_names,
            rva=directory_rva,
            directory=directory,
            module_name=module_name,
        )

    module_name = blob.read_asciiz(directory.name_rva, what="export module name")

    entries: list[ExportEntry] = []
    for i in range(directory.number_of_names):
        ordinal = blob.unpack(
            "<H", directory.ordinal_table_rva + 2 * i, what="export ordinal"
        )[0]
        name_rva = blob.unpack(
            "<I", directory.name_pointer_table_rva + 4 * i, what="export name pointer"
        )[0]
        function_rva = blob.unpack(
            "<I", directory.address_table_rva + 4 * ordinal, what="export address"
        )[0]

        forwarder = None
        if directory_rva <= function_rva < directory_rva + directory_size:
            forwarder = blob.read_asciiz(function_rva, what="export forwarder")

        entries.append(ExportEntry(
            name=blob.read_asciiz(name_rva, what="export name"),
            name_rva=name_rva,
            ordinal=ordinal,
            biased_ordinal=ordinal + directory.ordinal_base,
            function_rva=function_rva,
            address=function_rva + image_base,
            forwarder=forwarder,
        ))

    return ExportTable(directory=directory, module_name=module_name, entries=entries)
