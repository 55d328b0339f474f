"""
Section Table Decoder and RVA Translator
=========================================

Decodes the array of 40-byte ``IMAGE_SECTION_HEADER`` records that follows
the optional header, and maps Relative Virtual Addresses to file offsets
through the resulting :class:`SectionMap`.

Overlapping or out-of-order sections are tolerated: translation picks the
first section in file order whose virtual range contains the address.
"""

from __future__ import annotations

import struct
from typing import Iterable, Iterator, Sequence

from pelens.core.errors import OutOfBounds, Truncated, UnmappedAddress
from pelens.core.models import Section
from pelens.parsers.byte_source import ByteSource, decode_name
from pelens.parsers.headers import PEHeaders

SECTION_HEADER_SIZE: int = 40
SECTION_NAME_SIZE: int = 8

# Name[8], VirtualSize, VirtualAddress, SizeOfRawData, PointerToRawData
_SECTION_PREFIX = struct.Struct(f"<{SECTION_NAME_SIZE}sIIII")


class SectionMap(Sequence[Section]):
    """Ordered section table with RVA to file-offset translation.

    Behaves as a read-only sequence of :class:`Section` in file order.
    """

    __slots__ = ("_sections",)

    def __init__(self, sections: Iterable[Section]) -> None:
        self._sections: tuple[Section, ...] = tuple(sections)

    def __getitem__(self, index):  # type: ignore[override]
        return self._sections[index]

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> Iterator[Section]:
        return iter(self._sections)

    @property
    def sections(self) -> tuple[Section, ...]:
        return self._sections

    def find(self, rva: int) -> Section | None:
        """Return the first section (file order) containing *rva*, or ``None``."""
        for sec in self._sections:
            if sec.contains(rva):
                return sec
        return None

    def contains(self, rva: int) -> bool:
        return self.find(rva) is not None

    def translate(self, rva: int) -> int:
        """Map *rva* to a file offset.

        Raises:
            UnmappedAddress: No section contains *rva*.
        """
        sec = self.find(rva)
        if sec is None:
            raise UnmappedAddress(rva)
        return sec.raw_pointer + (rva - sec.virtual_address)


def decode_sections(src: ByteSource, headers: PEHeaders) -> SectionMap:
    """Decode the declared number of section headers.

    Raises:
        Truncated: The section array extends past the end of the file.
    """
    count = headers.number_of_sections
    start = headers.section_table_offset
    try:
        src.check(start, count * SECTION_HEADER_SIZE)
    except OutOfBounds as exc:
        raise Truncated(
            f"section table of {count} entries at offset 0x{start:x} "
            f"extends past end of file (size 0x{src.size:x})"
        ) from exc

    return SectionMap(
        _decode_section(src, start + i * SECTION_HEADER_SIZE) for i in range(count)
    )


def _decode_section(src: ByteSource, offset: int) -> Section:
    raw_name, virtual_size, virtual_address, raw_size, raw_pointer = src.unpack(
        _SECTION_PREFIX, offset
    )
    return Section(
        name=decode_name(raw_name.rstrip(b"\x00")),
        raw_pointer=raw_pointer,
        virtual_address=virtual_address,
        virtual_end=virtual_address + max(virtual_size, raw_size),
        virtual_size=virtual_size,
        raw_size=raw_size,
    )
