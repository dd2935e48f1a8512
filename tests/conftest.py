"""Shared fixtures: a synthetic PE image factory and a temp-file helper.

Layout of the default image (both bitness variants)::

    0x0000  "MZ" ... e_lfanew = 0x80
    0x0080  PE header, optional header, 16 data directories
    0x0178  section table (PE32)   / 0x0188 (PE32+)
    0x0400  .text   RVA 0x1000  VirtualSize 0x1000
              0x1010 import descriptor -> "KERNEL32.dll" @0x1080
              0x1100 thunks: ExitProcess, ordinal 16, GetProcAddress
    0x1400  .edata  RVA 0x2000  VirtualSize 0x200
              0x2000 export directory for "sample.dll"
              ordinals [2, 0, 1] over names Alpha, Beta, Gamma
"""

import struct

import pytest


PE_OFFSET = 0x80
IMAGE_BASE_32 = 0x400000
IMAGE_BASE_64 = 0x140000000

TEXT = (b".text\x00\x00\x00", 0x1000, 0x1000, 0x1000, 0x400, 0x60000020)
EDATA = (b".edata\x00\x00", 0x200, 0x2000, 0x200, 0x1400, 0x40000040)


def _file_offset(rva):
    # Both default sections sit 0xC00 below their RVA on disk
    return rva - 0xC00


def _build_pe(
    bitness=32,
    *,
    signature=0x00004550,
    optional_magic=None,
    import_rva=0x1010,
    import_size=0x28,
    import_table_rva=0x1100,
    export_rva=0x2000,
    export_size=0x140,
    number_of_functions=3,
    ordinal_base=1,
    forwarder=False,
    sections=None,
    extra_sections=(),
    truncate=None,
):
    is64 = bitness == 64
    if optional_magic is None:
        optional_magic = 0x20B if is64 else 0x10B
    if sections is None:
        sections = [TEXT, EDATA]
    sections = list(sections) + list(extra_sections)

    data = bytearray(0x1600)
    data[0:2] = b"MZ"
    struct.pack_into("<I", data, 0x3C, PE_OFFSET)

    opt_size = 0xF0 if is64 else 0xE0
    struct.pack_into(
        "<IHHIIIHHHBBIIIII", data, PE_OFFSET,
        signature,
        0x8664 if is64 else 0x14C,
        len(sections),
        0x5F5E1000,
        0, 0,
        opt_size,
        0x2022 if is64 else 0x2102,
        optional_magic,
        14, 0,
        0x200, 0x200, 0,
        0x1500,
        0x1000,
    )

    opt = PE_OFFSET + 48
    if is64:
        struct.pack_into(
            "<QIIHHHHHHIIIIHHQQQQII", data, opt,
            IMAGE_BASE_64, 0x1000, 0x200,
            6, 0, 0, 0, 6, 0,
            0, 0x3000, 0x400, 0,
            3, 0x160,
            0x100000, 0x1000, 0x100000, 0x1000,
            0, 16,
        )
        dirs = opt + 88
    else:
        struct.pack_into(
            "<IIIIHHHHHHIIIIHHIIIIII", data, opt,
            0x2000, IMAGE_BASE_32, 0x1000, 0x200,
            6, 0, 0, 0, 6, 0,
            0, 0x3000, 0x400, 0,
            2, 0x140,
            0x100000, 0x1000, 0x100000, 0x1000,
            0, 16,
        )
        dirs = opt + 72

    struct.pack_into("<II", data, dirs, export_rva, export_size)
    struct.pack_into("<II", data, dirs + 8, import_rva, import_size)

    table = PE_OFFSET + 24 + opt_size
    for i, fields in enumerate(sections):
        struct.pack_into("<8sIIIIIIHHI", data, table + 40 * i, fields[0], *fields[1:5], 0, 0, 0, 0, fields[5])

    # -- import directory ------------------------------------------------
    struct.pack_into("<IIHHII", data, _file_offset(0x1010), 0, 0, 0, 0, 0x1080, import_table_rva)
    data[_file_offset(0x1080):_file_offset(0x1080) + 13] = b"KERNEL32.dll\x00"

    width = 8 if is64 else 4
    fmt = "<Q" if is64 else "<I"
    flag = (1 << 63) if is64 else (1 << 31)
    for i, value in enumerate((0x1200, flag | 16, 0x1210, 0)):
        struct.pack_into(fmt, data, _file_offset(0x1100) + width * i, value)

    struct.pack_into("<H", data, _file_offset(0x1200), 1)
    data[_file_offset(0x1202):_file_offset(0x1202) + 12] = b"ExitProcess\x00"
    struct.pack_into("<H", data, _file_offset(0x1210), 2)
    data[_file_offset(0x1212):_file_offset(0x1212) + 15] = b"GetProcAddress\x00"

    # -- export directory ------------------------------------------------
    struct.pack_into(
        "<IIHHIIIIIII", data, _file_offset(0x2000),
        0, 0x5F5E1000, 1, 0,
        0x2100, ordinal_base,
        number_of_functions, 3,
        0x2040, 0x2060, 0x2080,
    )
    addresses = [0x1500, 0x2140 if forwarder else 0x1600, 0x1700]
    struct.pack_into("<III", data, _file_offset(0x2040), *addresses)
    struct.pack_into("<III", data, _file_offset(0x2060), 0x2110, 0x2120, 0x2130)
    struct.pack_into("<HHH", data, _file_offset(0x2080), 2, 0, 1)
    for rva, text in (
        (0x2100, b"sample.dll\x00"),
        (0x2110, b"Alpha\x00"),
        (0x2120, b"Beta\x00"),
        (0x2130, b"Gamma\x00"),
        (0x2140, b"NTDLL.RtlAllocateHeap\x00"),
    ):
        data[_file_offset(rva):_file_offset(rva) + len(text)] = text

    if truncate is not None:
        del data[truncate:]
    return bytes(data)


@pytest.fixture
def make_pe():
    """Factory for synthetic PE32 / PE32+ images; keyword args tweak the layout."""
    return _build_pe


@pytest.fixture
def dummy_file(tmp_path):
    """Write bytes to a temporary file and return its path."""
    def _write(data, name="sample.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(data))
        return path
    return _write
