import struct

import pytest

from peinfo.core.errors import TruncatedInput
from peinfo.core.models import Bitness, ImportKind
from peinfo.parsers.imports import (
    IMPORT_DESCRIPTOR_SIZE,
    decode_thunk,
    iter_import_descriptors,
    iter_thunks,
    walk_imports,
)
from peinfo.parsers.reader import SectionBlob


def _text_blob(make_pe, bits, **kwargs):
    """The .text section of the synthetic image (RVA 0x1000, raw 0x400)."""
    data = make_pe(bits, **kwargs)
    return SectionBlob(data[0x400:0x1400], 0x1000)

# ---descriptor walk-----------------------------------------------------------------------------------------

def test_descriptor_size():
    assert IMPORT_DESCRIPTOR_SIZE == 20


def test_iter_import_descriptors_stops_at_terminator(make_pe):
    """The walk ends at the first descriptor with a zero name RVA"""
    blob = _text_blob(make_pe, 32)
    descriptors = list(iter_import_descriptors(blob, 0x1010))

    assert len(descriptors) == 1
    assert descriptors[0].rva == 0x1010
    assert descriptors[0].name_rva == 0x1080
    assert descriptors[0].import_table_rva == 0x1100


def test_iter_import_descriptors_runs_off_section():
    """No terminator before the end of the section is a TruncatedInput"""
    record = struct.pack("<IIHHII", 0, 0, 0, 0, 0x1100, 0)
    blob = SectionBlob(record * 3, 0x1000)
    with pytest.raises(TruncatedInput):
        list(iter_import_descriptors(blob, 0x1000))


def test_iter_import_descriptors_is_lazy():
    """Descriptors are produced one at a time"""
    record = struct.pack("<IIHHII", 0, 0, 0, 0, 0x1100, 0)
    blob = SectionBlob(record * 2, 0x1000)
    walker = iter_import_descriptors(blob, 0x1000)
    assert next(walker).rva == 0x1000
    assert next(walker).rva == 0x1014
    with pytest.raises(TruncatedInput):
        next(walker)

# ---thunk walk----------------------------------------------------------------------------------------------

@pytest.mark.parametrize("bits,width", [(32, 4), (64, 8)])
def test_iter_thunks(make_pe, bits, width):
    """Thunks are 4 or 8 bytes wide and end at the zero thunk"""
    blob = _text_blob(make_pe, bits)
    bitness = Bitness.PE32 if bits == 32 else Bitness.PE32_PLUS
    thunks = list(iter_thunks(blob, 0x1100, bitness))

    assert [rva for rva, _ in thunks] == [0x1100, 0x1100 + width, 0x1100 + 2 * width]
    assert thunks[0][1] == 0x1200
    assert thunks[2][1] == 0x1210


def test_decode_thunk_ordinal_pe32():
    """Bit 31 marks a 32-bit ordinal import; the ordinal is the low bits"""
    blob = SectionBlob(b"\x00" * 16, 0x1000)
    sym = decode_thunk(blob, 0x1004, 0x80000010, Bitness.PE32, 0x400000)

    assert sym.kind is ImportKind.ORDINAL
    assert sym.ordinal == 16
    assert sym.address == 0x401004
    assert sym.raw_value == 0x80000010
    assert sym.name is None
    assert sym.display_name == "ordinal #16"


def test_decode_thunk_ordinal_pe32_plus():
    """Bit 63 marks a 64-bit ordinal import"""
    blob = SectionBlob(b"\x00" * 16, 0x1000)
    sym = decode_thunk(blob, 0x1008, (1 << 63) | 0x1234, Bitness.PE32_PLUS, 0x140000000)
    assert sym.kind is ImportKind.ORDINAL
    assert sym.ordinal == 0x1234
    assert sym.address == 0x140001008


def test_decode_thunk_bit31_in_pe32_plus_is_a_name():
    """For PE32+ only bit 63 selects ordinal; a value with bit 31 is an RVA"""
    blob = SectionBlob(b"\x00" * 16, 0x1000)
    with pytest.raises(TruncatedInput):
        decode_thunk(blob, 0x1000, 0x80001000, Bitness.PE32_PLUS, 0)


def test_decode_thunk_name():
    """A name import points at { u16 hint; char name[] }"""
    blob = SectionBlob(b"\x00" * 8 + struct.pack("<H", 7) + b"LoadLibraryA\x00", 0x1000)
    sym = decode_thunk(blob, 0x1000, 0x1008, Bitness.PE32, 0x400000)

    assert sym.kind is ImportKind.NAME
    assert sym.hint == 7
    assert sym.name == "LoadLibraryA"
    assert sym.ordinal is None
    assert sym.display_name == "LoadLibraryA"


def test_decode_thunk_name_outside_section():
    """A hint/name RVA outside the section is a TruncatedInput"""
    blob = SectionBlob(b"\x00" * 16, 0x1000)
    with pytest.raises(TruncatedInput):
        decode_thunk(blob, 0x1000, 0x5000, Bitness.PE32, 0)

# ---walk_imports tests--------------------------------------------------------------------------------------

@pytest.mark.parametrize("bits,base", [(32, 0x400000), (64, 0x140000000)])
def test_walk_imports(make_pe, bits, base):
    """One module with two name imports around an ordinal import"""
    blob = _text_blob(make_pe, bits)
    bitness = Bitness.PE32 if bits == 32 else Bitness.PE32_PLUS
    width = bitness.thunk_size
    modules = walk_imports(blob, 0x1010, bitness, base)

    assert len(modules) == 1
    module = modules[0]
    assert module.name == "KERNEL32.dll"
    assert module.descriptor.name_rva == 0x1080

    syms = module.symbols
    assert [s.kind for s in syms] == [ImportKind.NAME, ImportKind.ORDINAL, ImportKind.NAME]
    assert [s.display_name for s in syms] == ["ExitProcess", "ordinal #16", "GetProcAddress"]
    assert [s.hint for s in syms] == [1, None, 2]
    assert [s.address for s in syms] == [base + 0x1100, base + 0x1100 + width, base + 0x1100 + 2 * width]


def test_walk_imports_without_thunk_table(make_pe):
    """A descriptor with a zero import table RVA lists no symbols"""
    blob = _text_blob(make_pe, 32, import_table_rva=0)
    modules = walk_imports(blob, 0x1010, Bitness.PE32, 0x400000)

    assert len(modules) == 1
    assert modules[0].name == "KERNEL32.dll"
    assert modules[0].symbols == []


def test_walk_imports_empty_directory():
    """A directory that starts with the terminator yields no modules"""
    blob = SectionBlob(b"\x00" * 40, 0x1000)
    assert walk_imports(blob, 0x1000, Bitness.PE32, 0) == []


def test_walk_imports_unterminated_thunks():
    """Thunks running off the end of the section are a TruncatedInput"""
    data = bytearray(0x40)
    struct.pack_into("<IIHHII", data, 0, 0, 0, 0, 0, 0x1030, 0x1038)
    data[0x30:0x34] = b"A.d\x00"
    struct.pack_into("<II", data, 0x38, 0x80000001, 0x80000002)
    blob = SectionBlob(bytes(data), 0x1000)
    with pytest.raises(TruncatedInput):
        walk_imports(blob, 0x1000, Bitness.PE32, 0)
