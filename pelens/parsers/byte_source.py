"""
Bounds-Checked Byte Source
===========================

Read-only view over the raw bytes of a file.  Every accessor checks the
requested range against the buffer length and raises
:class:`~pelens.core.errors.OutOfBounds` instead of reading past the end,
so the decoders built on top never index raw memory directly.

Files are memory-mapped for the duration of a ``with`` block opened by
:func:`open_byte_source`; the mapping and the file handle are released on
every exit path.
"""

from __future__ import annotations

import mmap
import os
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Union

from pelens.core.errors import FileAccessError, OutOfBounds

Buffer = Union[bytes, bytearray, mmap.mmap]

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class ByteSource:
    """Little-endian, bounds-checked accessors over an immutable buffer.

    Usage::

        src = ByteSource(b"MZ...")
        magic = src.read(0, 2)
        e_lfanew = src.u32(0x3C)
    """

    __slots__ = ("_buf", "_size")

    def __init__(self, data: Buffer) -> None:
        self._buf = data
        self._size = len(data)

    @property
    def size(self) -> int:
        """Total length of the underlying buffer in bytes."""
        return self._size

    def __len__(self) -> int:
        return self._size

    def check(self, offset: int, length: int) -> None:
        """Raise :class:`OutOfBounds` unless ``[offset, offset+length)`` is readable."""
        if offset < 0 or length < 0 or offset + length > self._size:
            raise OutOfBounds(offset, length, self._size)

    # ------------------------------------------------------------------ #
    #  Fixed-width integers
    # ------------------------------------------------------------------ #

    def _unpack(self, st: struct.Struct, offset: int) -> int:
        self.check(offset, st.size)
        return st.unpack_from(self._buf, offset)[0]

    def u8(self, offset: int) -> int:
        return self._unpack(_U8, offset)

    def u16(self, offset: int) -> int:
        return self._unpack(_U16, offset)

    def u32(self, offset: int) -> int:
        return self._unpack(_U32, offset)

    def u64(self, offset: int) -> int:
        return self._unpack(_U64, offset)

    def unpack(self, fmt: str | struct.Struct, offset: int) -> tuple[Any, ...]:
        """Unpack a fixed-size struct record at *offset*."""
        st = fmt if isinstance(fmt, struct.Struct) else struct.Struct(fmt)
        self.check(offset, st.size)
        return st.unpack_from(self._buf, offset)

    # ------------------------------------------------------------------ #
    #  Byte strings
    # ------------------------------------------------------------------ #

    def read(self, offset: int, length: int) -> bytes:
        """Return exactly *length* bytes starting at *offset*."""
        self.check(offset, length)
        return bytes(self._buf[offset:offset + length])

    def cstring(self, offset: int, limit: int | None = None) -> bytes:
        """Return the NUL-terminated byte string at *offset* (terminator excluded).

        Args:
            offset: File offset of the first character.
            limit: Maximum number of characters to scan.  ``None`` scans to
                the end of the buffer.

        Raises:
            OutOfBounds: If no terminator appears before the end of the
                buffer or within *limit* characters.
        """
        self.check(offset, 1)
        end = self._size if limit is None else min(self._size, offset + limit + 1)
        pos = self._buf.find(b"\x00", offset, end)
        if pos == -1:
            raise OutOfBounds(offset, end - offset + 1, self._size)
        return bytes(self._buf[offset:pos])


def decode_name(raw: bytes) -> str:
    """Decode a name read from the image; undecodable bytes become U+FFFD."""
    return raw.decode("utf-8", errors="replace")


@contextmanager
def open_byte_source(
    path: str | Path, max_size: int | None = None
) -> Generator[ByteSource, None, None]:
    """Map *path* read-only and yield a :class:`ByteSource` over it.

    Args:
        path: File to open.
        max_size: Reject files larger than this many bytes.

    Raises:
        FileAccessError: If the file is missing, unreadable or too large.
    """
    file_path = Path(path)
    try:
        fh = open(file_path, "rb")
    except OSError as exc:
        raise FileAccessError(f"cannot open {file_path}: {exc.strerror or exc}") from exc

    with fh:
        try:
            size = os.fstat(fh.fileno()).st_size
        except OSError as exc:
            raise FileAccessError(f"cannot stat {file_path}: {exc}") from exc

        if max_size is not None and size > max_size:
            raise FileAccessError(
                f"{file_path} is {size:,} bytes, larger than the "
                f"{max_size:,}-byte limit"
            )

        if size == 0:
            yield ByteSource(b"")
            return

        try:
            mapped = mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as exc:
            raise FileAccessError(f"cannot map {file_path}: {exc}") from exc

        with mapped:
            yield ByteSource(mapped)
