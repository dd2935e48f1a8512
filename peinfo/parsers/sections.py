"""
Section Table and RVA Resolution
=================================

Reads the section-header array that follows the optional header and
translates RVAs to file offsets through it.

Sections are kept in file order.  Nothing here assumes they are sorted
by RVA or that they do not overlap: when several sections claim the
same RVA, the last one in file order wins.
"""

from __future__ import annotations

import struct
from typing import Optional, Sequence

from peinfo.core.models import Location, PEHeaders, Section
from peinfo.parsers.headers import OPTIONAL_HEADER_OFFSET
from peinfo.parsers.reader import RawReader, SectionBlob


_SECTION_FMT: str = "<8sIIIIIIHHI"
SECTION_HEADER_SIZE: int = struct.calcsize(_SECTION_FMT)  # 40


def section_table_offset(headers: PEHeaders) -> int:
    """File offset of the first section header."""
    return (
        headers.pe_offset
        + OPTIONAL_HEADER_OFFSET
        + headers.image_header.size_of_optional_header
    )


def read_section_table(reader: RawReader, headers: PEHeaders) -> list[Section]:
    """Decode ``number_of_sections`` section headers in file order.

    Raises:
        TruncatedInput: If the file ends inside the array.
    """
    count = headers.image_header.number_of_sections
    start = section_table_offset(headers)
    # One read for the whole array so a short file fails before decoding.
    raw = reader.read(start, count * SECTION_HEADER_SIZE, what="section table")

    sections: list[Section] = []
    for index in range(count):
        (
            raw_name,
            virtual_size,
            virtual_address,
            size_of_raw_data,
            pointer_to_raw_data,
            pointer_to_relocations,
            pointer_to_linenumbers,
            number_of_relocations,
            number_of_linenumbers,
            characteristics,
        ) = struct.unpack_from(_SECTION_FMT, raw, index * SECTION_HEADER_SIZE)
        sections.append(Section(
            index=index,
            raw_name=raw_name,
            virtual_size=virtual_size,
            virtual_address=virtual_address,
            size_of_raw_data=size_of_raw_data,
            pointer_to_raw_data=pointer_to_raw_data,
            pointer_to_relocations=pointer_to_relocations,
            pointer_to_linenumbers=pointer_to_linenumbers,
            number_of_relocations=number_of_relocations,
            number_of_linenumbers=number_of_linenumbers,
            characteristics=characteristics,
        ))
    return sections


class RvaResolver:
    """Maps RVAs onto the section table.

    Args:
        sections: Sections in file order.
    """

    def __init__(self, sections: Sequence[Section]) -> None:
        self._sections: tuple[Section, ...] = tuple(sections)

    @property
    def sections(self) -> tuple[Section, ...]:
        return self._sections

    def find_section(self, rva: int) -> Optional[Section]:
        """Return the section containing *rva* (last match wins)."""
        found: Optional[Section] = None
        for section in self._sections:
            if section.contains(rva):
                found = section
        return found

    def locate(self, rva: int) -> Optional[Location]:
        """Translate *rva* to a :class:`Location`, or ``None`` if unmapped."""
        section = self.find_section(rva)
        if section is None:
            return None
        section_offset = rva - section.virtual_address
        return Location(
            rva=rva,
            file_offset=section.pointer_to_raw_data + section_offset,
            section_index=section.index,
            section_offset=section_offset,
            remaining=section.virtual_size - section_offset,
        )

    def read_section(self, reader: RawReader, location: Location) -> SectionBlob:
        """Load the whole section behind *location* into memory.

        ``virtual_size`` bytes are read from the section's raw data
        pointer; a declaration reaching past the end of the file is a
        :class:`~peinfo.core.errors.TruncatedInput`.
        """
        section = next(
            s for s in self._sections if s.index == location.section_index
        )
        data = reader.read(
            section.pointer_to_raw_data,
            section.virtual_size,
            what=f"section {section.name!r}",
        )
        return SectionBlob(data, section.virtual_address)
