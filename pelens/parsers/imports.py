"""
Import Table Decoder
=====================

Decodes the array of ``IMAGE_IMPORT_DESCRIPTOR`` records referenced by
data directory 1, and for each imported library its thunk table.

Neither table is length-prefixed: the descriptor array ends with an
all-zero record and each thunk table with a zero thunk.  Both are read as
bounded lazy sequences, so a hostile file that omits a terminator fails
deterministically with :class:`~pelens.core.errors.CorruptDirectory`
(cap reached, or end of file reached first) instead of driving an
unbounded walk.

Thunks are 4 bytes wide in PE32 images and 8 bytes in PE32+.  When the
high bit is set the thunk imports by ordinal (low 16 bits); otherwise its
low 31 bits are the RVA of an ``IMAGE_IMPORT_BY_NAME`` record: a 16-bit
hint followed by a NUL-terminated name.

References:
    - Microsoft. (2024). PE Format, "The .idata Section". Microsoft Learn.
"""

from __future__ import annotations

import struct
from typing import Iterator

from pelens.core.errors import CorruptDirectory, OutOfBounds, UnmappedAddress
from pelens.core.models import ImportFunction, ImportLibrary
from pelens.parsers.byte_source import ByteSource, decode_name
from pelens.parsers.headers import PEHeaders, Width
from pelens.parsers.sections import SectionMap

# OriginalFirstThunk, TimeDateStamp, ForwarderChain, Name, FirstThunk
_IMPORT_DESCRIPTOR = struct.Struct("<IIIII")

_HINT_NAME_RVA_MASK: int = 0x7FFFFFFF
_ORDINAL_MASK: int = 0xFFFF


def decode_imports(
    src: ByteSource,
    headers: PEHeaders,
    sections: SectionMap,
    *,
    max_descriptors: int = 4096,
    max_thunks: int = 65_536,
    max_name_length: int = 4096,
) -> tuple[ImportLibrary, ...]:
    """Decode every imported library, or return ``()`` when there are none.

    Raises:
        UnmappedAddress: The import directory RVA itself is not mapped.
        CorruptDirectory: A walk is unterminated, exceeds its cap, or
            references an unmapped address.
    """
    directory = headers.import_directory
    if not directory.present:
        return ()

    offset = sections.translate(directory.rva)
    libraries: list[ImportLibrary] = []

    for descriptor in bounded_records(
        src, offset, _IMPORT_DESCRIPTOR, max_descriptors, "import descriptor array"
    ):
        original_first_thunk, _stamp, _chain, name_rva, first_thunk = descriptor
        dll_name = _read_string(src, sections, name_rva, max_name_length, "library name")

        # Prefer the lookup table; bound images may have rewritten the IAT.
        thunk_rva = original_first_thunk or first_thunk
        functions = tuple(
            _decode_thunk(src, sections, headers.width, value, max_name_length)
            for value in _thunk_values(src, sections, headers.width, thunk_rva, max_thunks, dll_name)
        )
        libraries.append(ImportLibrary(dll_name=dll_name, functions=functions))

    return tuple(libraries)


def bounded_records(
    src: ByteSource,
    offset: int,
    record: struct.Struct,
    cap: int,
    label: str,
) -> Iterator[tuple[int, ...]]:
    """Yield fixed-size records from *offset* until an all-zero record.

    The terminator is not yielded and does not count towards *cap*.

    Raises:
        CorruptDirectory: More than *cap* records precede the terminator,
            or the end of the file is reached first.
    """
    index = 0
    while True:
        try:
            fields = src.unpack(record, offset + index * record.size)
        except OutOfBounds as exc:
            raise CorruptDirectory(
                f"{label} at offset 0x{offset:x} runs past end of file "
                f"after {index} entries without a terminator"
            ) from exc
        if not any(fields):
            return
        if index >= cap:
            raise CorruptDirectory(
                f"{label} at offset 0x{offset:x} exceeds {cap} entries "
                f"without a terminator"
            )
        yield fields
        index += 1


def _thunk_values(
    src: ByteSource,
    sections: SectionMap,
    width: Width,
    rva: int,
    cap: int,
    dll_name: str,
) -> Iterator[int]:
    offset = _translate(sections, rva, f"thunk table of {dll_name}")
    for (value,) in bounded_records(
        src, offset, width.thunk_format, cap, f"thunk table of {dll_name}"
    ):
        yield value


def _decode_thunk(
    src: ByteSource,
    sections: SectionMap,
    width: Width,
    value: int,
    max_name_length: int,
) -> ImportFunction:
    if value & width.ordinal_flag:
        return ImportFunction.by_ordinal(value & _ORDINAL_MASK)

    hint_name_rva = value & _HINT_NAME_RVA_MASK
    offset = _translate(sections, hint_name_rva, "hint/name record")
    try:
        hint = src.u16(offset)
    except OutOfBounds as exc:
        raise CorruptDirectory(
            f"hint/name record at RVA 0x{hint_name_rva:x} extends past end of file"
        ) from exc
    name = _read_cstring(src, offset + 2, max_name_length, hint_name_rva, "import name")
    if not name:
        raise CorruptDirectory(f"import name at RVA 0x{hint_name_rva:x} is empty")
    return ImportFunction.by_name(hint=hint, name=name)


def _translate(sections: SectionMap, rva: int, label: str) -> int:
    try:
        return sections.translate(rva)
    except UnmappedAddress as exc:
        raise CorruptDirectory(f"{label} at RVA 0x{rva:x} is unmapped") from exc


def _read_string(
    src: ByteSource, sections: SectionMap, rva: int, limit: int, label: str
) -> str:
    return _read_cstring(src, _translate(sections, rva, label), limit, rva, label)


def _read_cstring(src: ByteSource, offset: int, limit: int, rva: int, label: str) -> str:
    try:
        return decode_name(src.cstring(offset, limit))
    except OutOfBounds as exc:
        raise CorruptDirectory(f"{label} at RVA 0x{rva:x} is unterminated") from exc
