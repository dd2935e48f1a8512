import pytest

from peinfo.core.errors import TruncatedInput
from peinfo.core.models import Section
from peinfo.parsers.headers import decode_headers
from peinfo.parsers.reader import RawReader
from peinfo.parsers.sections import (
    SECTION_HEADER_SIZE,
    RvaResolver,
    read_section_table,
    section_table_offset,
)


def _section(index, va, vsize, ptr, name=b".s\x00\x00\x00\x00\x00\x00"):
    return Section(
        index=index,
        raw_name=name,
        virtual_size=vsize,
        virtual_address=va,
        size_of_raw_data=vsize,
        pointer_to_raw_data=ptr,
    )


def _load(data):
    reader = RawReader.from_bytes(data)
    headers = decode_headers(reader)
    return reader, headers

# ---read_section_table tests--------------------------------------------------------------------------------

@pytest.mark.parametrize("bits,offset", [(32, 0x178), (64, 0x188)])
def test_section_table_offset(make_pe, bits, offset):
    """The table follows the declared optional-header size"""
    _, headers = _load(make_pe(bits))
    assert section_table_offset(headers) == offset
    assert SECTION_HEADER_SIZE == 40


def test_read_section_table(make_pe):
    """Sections come back in file order with all fields decoded"""
    reader, headers = _load(make_pe(32))
    sections = read_section_table(reader, headers)

    assert [s.name for s in sections] == [".text", ".edata"]
    assert [s.index for s in sections] == [0, 1]

    text = sections[0]
    assert text.raw_name == b".text\x00\x00\x00"
    assert text.virtual_address == 0x1000
    assert text.virtual_size == 0x1000
    assert text.size_of_raw_data == 0x1000
    assert text.pointer_to_raw_data == 0x400
    assert text.flags == "R X CODE"
    assert sections[1].flags == "R IDATA"


def test_read_section_table_eight_byte_name(make_pe):
    """A name filling all 8 bytes has no NUL and is still bounded"""
    extra = (b".textbss", 0x100, 0x3000, 0, 0, 0xC0000080)
    reader, headers = _load(make_pe(32, extra_sections=[extra]))
    sections = read_section_table(reader, headers)

    assert len(sections) == 3
    assert sections[2].name == ".textbss"
    assert sections[2].flags == "R W UDATA"


def test_read_section_table_non_ascii_name(make_pe):
    extra = (b"\xff\xfeab\x00\x00\x00\x00", 0x100, 0x3000, 0, 0, 0)
    reader, headers = _load(make_pe(32, extra_sections=[extra]))
    sections = read_section_table(reader, headers)
    assert sections[2].name == "\ufffd\ufffdab"
    assert sections[2].flags == "-"


def test_read_section_table_truncated(make_pe):
    """A table reaching past the end of the file is a TruncatedInput"""
    reader, headers = _load(make_pe(32, truncate=0x178 + 60))
    with pytest.raises(TruncatedInput):
        read_section_table(reader, headers)


def test_section_name_requires_eight_bytes():
    with pytest.raises(ValueError):
        _section(0, 0x1000, 0x100, 0x400, name=b".text")

# ---RvaResolver tests---------------------------------------------------------------------------------------

def test_locate_import_directory(make_pe):
    """RVA 0x1010 in .text (RVA 0x1000, raw 0x400) lands at file offset 0x410"""
    reader, headers = _load(make_pe(32))
    resolver = RvaResolver(read_section_table(reader, headers))

    loc = resolver.locate(0x1010)
    assert loc is not None
    assert loc.rva == 0x1010
    assert loc.file_offset == 0x410
    assert loc.section_index == 0
    assert loc.section_offset == 0x10
    assert loc.remaining == 0xFF0


@pytest.mark.parametrize("rva,expected", [(0x0FFF, None), (0x1000, 0), (0x1FFF, 0), (0x2000, 1), (0x21FF, 1), (0x2200, None)])
def test_locate_boundaries(rva, expected):
    """Containment is half-open: [virtual_address, virtual_address + virtual_size)"""
    resolver = RvaResolver([_section(0, 0x1000, 0x1000, 0x400), _section(1, 0x2000, 0x200, 0x1400)])
    loc = resolver.locate(rva)
    if expected is None:
        assert loc is None
    else:
        assert loc.section_index == expected


def test_locate_zero_size_section():
    resolver = RvaResolver([_section(0, 0x1000, 0, 0x400)])
    assert resolver.locate(0x1000) is None


def test_locate_overlap_last_wins():
    """When sections overlap, the last one in file order claims the RVA"""
    resolver = RvaResolver([
        _section(0, 0x1000, 0x2000, 0x400),
        _section(1, 0x1800, 0x400, 0x3000),
    ])
    loc = resolver.locate(0x1900)
    assert loc.section_index == 1
    assert loc.file_offset == 0x3100

    # outside the second section the first one still answers
    assert resolver.locate(0x1100).section_index == 0
    assert resolver.locate(0x2800).section_index == 0


def test_locate_unsorted_sections():
    """Sections need not be sorted by RVA"""
    resolver = RvaResolver([
        _section(0, 0x5000, 0x100, 0x800),
        _section(1, 0x1000, 0x100, 0x400),
    ])
    assert resolver.locate(0x1080).file_offset == 0x480
    assert resolver.locate(0x5080).file_offset == 0x880


def test_read_section(make_pe):
    """The containing section is read in full and addressed by RVA"""
    reader, headers = _load(make_pe(32))
    resolver = RvaResolver(read_section_table(reader, headers))

    blob = resolver.read_section(reader, resolver.locate(0x2000))
    assert len(blob) == 0x200
    assert blob.base_rva == 0x2000
    assert blob.read_asciiz(0x2100) == "sample.dll"


def test_read_section_past_eof(make_pe):
    """A section whose declared size runs past the end of file is a TruncatedInput"""
    reader, headers = _load(make_pe(32, truncate=0x1500))
    resolver = RvaResolver(read_section_table(reader, headers))

    with pytest.raises(TruncatedInput):
        resolver.read_section(reader, resolver.locate(0x2000))
