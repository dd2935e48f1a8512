"""
Bounded Byte Readers
=====================

The two I/O primitives every decoder goes through:

* :class:`RawReader` -- absolute ``read(offset, length)`` against a
  seekable binary stream.  The stream length is measured once and any
  request reaching past it fails with :class:`TruncatedInput` before a
  single byte is allocated.
* :class:`SectionBlob` -- a section's bytes read in full, addressed by
  RVA.  RVA-to-blob translation is a pure subtraction and every decode
  checks ``offset + size <= len(blob)`` first.
"""

from __future__ import annotations

import io
import os
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Generator

from peinfo.core.errors import TruncatedInput


class RawReader:
    """Random-access reader over a seekable binary stream.

    Usage::

        with open_reader("sample.exe") as reader:
            stub = reader.read(0x3C, 4)
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._size: int = stream.seek(0, os.SEEK_END)

    @classmethod
    def from_bytes(cls, data: bytes) -> RawReader:
        """Wrap an in-memory buffer with the same bounds checks."""
        return cls(io.BytesIO(data))

    @property
    def size(self) -> int:
        """Total stream length in bytes."""
        return self._size

    def read(self, offset: int, length: int, *, what: str = "data") -> bytes:
        """Read exactly *length* bytes at absolute *offset*.

        Raises:
            TruncatedInput: If the range is negative or extends past the
                end of the stream.
        """
        if offset < 0 or length < 0 or offset + length > self._size:
            raise TruncatedInput(offset, length, self._size - offset, what=what)
        self._stream.seek(offset)
        data = self._stream.read(length)
        if len(data) != length:
            # stream shrank underneath us
            raise TruncatedInput(offset, length, len(data), what=what)
        return data

    def unpack(self, fmt: str, offset: int, *, what: str = "data") -> tuple:
        """Read and :func:`struct.unpack` a fixed-size record at *offset*."""
        return struct.unpack(fmt, self.read(offset, struct.calcsize(fmt), what=what))


@contextmanager
def open_reader(path: str | Path) -> Generator[RawReader, None, None]:
    """Open *path* read-only and yield a :class:`RawReader`.

    The file handle is closed on every exit path, including decode
    failures.
    """
    with open(path, "rb") as fh:
        yield RawReader(fh)


class SectionBlob:
    """A section's raw bytes, addressed by RVA.

    Args:
        data: The section bytes as read from disk.
        base_rva: RVA of the first byte of *data*.
    """

    __slots__ = ("_data", "_base_rva")

    def __init__(self, data: bytes, base_rva: int) -> None:
        self._data = data
        self._base_rva = base_rva

    def __len__(self) -> int:
        return len(self._data)

    @property
    def base_rva(self) -> int:
        return self._base_rva

    @property
    def end_rva(self) -> int:
        """First RVA past the end of the blob."""
        return self._base_rva + len(self._data)

    def offset_of(self, rva: int) -> int:
        """Translate *rva* to an offset inside the blob (may be out of range)."""
        return rva - self._base_rva

    def _check(self, rva: int, size: int, what: str) -> int:
        offset = self.offset_of(rva)
        if offset < 0 or offset + size > len(self._data):
            raise TruncatedInput(rva, size, len(self._data) - offset, what=what)
        return offset

    def slice(self, rva: int, size: int, *, what: str = "data") -> bytes:
        offset = self._check(rva, size, what)
        return self._data[offset:offset + size]

    def unpack(self, fmt: str, rva: int, *, what: str = "data") -> tuple:
        """Decode a fixed-size record at *rva*."""
        offset = self._check(rva, struct.calcsize(fmt), what)
        return struct.unpack_from(fmt, self._data, offset)

    def read_asciiz(self, rva: int, *, what: str = "string") -> str:
        """Read a NUL-terminated ASCII string that must end inside the blob."""
        offset = self._check(rva, 1, what)
        end = self._data.find(b"\x00", offset)
        if end == -1:
            raise TruncatedInput(rva, len(self._data) - offset + 1,
                                 len(self._data) - offset, what=what)
        return self._data[offset:end].decode("ascii", errors="replace")
