"""
PE Header Decoder
==================

Validates and decodes the three fixed headers at the front of a PE image:

    - DOS header (``MZ`` stub), whose ``e_lfanew`` field locates the NT headers
    - NT signature ``PE\\0\\0`` followed by the 20-byte COFF file header
    - Optional header, whose magic selects PE32 or PE32+

The optional-header magic is resolved once into a :class:`Width`, which
carries every architecture-dependent layout detail the downstream
decoders need (thunk size, ordinal flag, data-directory offset).

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from pelens.core.errors import InvalidFormat, UnsupportedArchitecture
from pelens.parsers.byte_source import ByteSource


# ---------------------------------------------------------------------------
# PE Constants
# ---------------------------------------------------------------------------

MZ_MAGIC: bytes = b"MZ"
PE_MAGIC: bytes = b"PE\x00\x00"

PE32_MAGIC: int = 0x10B
PE32PLUS_MAGIC: int = 0x20B

DOS_HEADER_SIZE: int = 64
E_LFANEW_OFFSET: int = 0x3C
COFF_HEADER_SIZE: int = 20

IMAGE_DIRECTORY_ENTRY_EXPORT: int = 0
IMAGE_DIRECTORY_ENTRY_IMPORT: int = 1

IMAGE_FILE_MACHINE_UNKNOWN: int = 0x0
IMAGE_FILE_MACHINE_I386: int = 0x14C
IMAGE_FILE_MACHINE_ARM: int = 0x1C0
IMAGE_FILE_MACHINE_ARMNT: int = 0x1C4
IMAGE_FILE_MACHINE_IA64: int = 0x200
IMAGE_FILE_MACHINE_RISCV32: int = 0x5032
IMAGE_FILE_MACHINE_RISCV64: int = 0x5064
IMAGE_FILE_MACHINE_AMD64: int = 0x8664
IMAGE_FILE_MACHINE_ARM64: int = 0xAA64

_MACHINE_NAMES: dict[int, str] = {
    IMAGE_FILE_MACHINE_UNKNOWN: "Unknown",
    IMAGE_FILE_MACHINE_I386: "x86",
    IMAGE_FILE_MACHINE_ARM: "ARM",
    IMAGE_FILE_MACHINE_ARMNT: "ARM Thumb-2",
    IMAGE_FILE_MACHINE_IA64: "IA-64",
    IMAGE_FILE_MACHINE_RISCV32: "RISC-V 32",
    IMAGE_FILE_MACHINE_RISCV64: "RISC-V 64",
    IMAGE_FILE_MACHINE_AMD64: "x86_64",
    IMAGE_FILE_MACHINE_ARM64: "AArch64",
}

# Machine, NumberOfSections, TimeDateStamp, PointerToSymbolTable,
# NumberOfSymbols, SizeOfOptionalHeader, Characteristics
_COFF_HEADER = struct.Struct("<HHIIIHH")
_DATA_DIRECTORY = struct.Struct("<II")


def machine_name(machine: int) -> str:
    """Return a human-readable name for a COFF ``Machine`` value."""
    return _MACHINE_NAMES.get(machine, f"unknown(0x{machine:x})")


# ---------------------------------------------------------------------------
# Architecture width
# ---------------------------------------------------------------------------

class Width(enum.Enum):
    """Optional-header flavour, selected once from the magic number.

    Each member is ``(magic, thunk_size, data_directory_offset)``; the
    data-directory offset is relative to the start of the optional header.
    """

    PE32 = (PE32_MAGIC, 4, 0x60)
    PE32PLUS = (PE32PLUS_MAGIC, 8, 0x70)

    def __init__(self, magic: int, thunk_size: int, data_directory_offset: int) -> None:
        self.magic = magic
        self.thunk_size = thunk_size
        self.data_directory_offset = data_directory_offset

    @property
    def is_x64(self) -> bool:
        return self is Width.PE32PLUS

    @property
    def ordinal_flag(self) -> int:
        """High bit of a thunk: set for import-by-ordinal entries."""
        return 1 << (self.thunk_size * 8 - 1)

    @property
    def thunk_format(self) -> struct.Struct:
        return _THUNK_FORMATS[self.thunk_size]

    @property
    def number_of_rva_and_sizes_offset(self) -> int:
        """Offset of NumberOfRvaAndSizes, the dword before the directory array."""
        return self.data_directory_offset - 4

    @classmethod
    def from_magic(cls, magic: int) -> Width:
        for member in cls:
            if member.magic == magic:
                return member
        raise UnsupportedArchitecture(
            f"optional header magic 0x{magic:x} is neither PE32 (0x10b) "
            f"nor PE32+ (0x20b)"
        )


_THUNK_FORMATS: dict[int, struct.Struct] = {
    4: struct.Struct("<I"),
    8: struct.Struct("<Q"),
}


# ---------------------------------------------------------------------------
# Decoded header record
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DataDirectory:
    """An (RVA, size) pair from the optional header's directory array."""

    rva: int = 0
    size: int = 0

    @property
    def present(self) -> bool:
        return self.rva != 0


@dataclass(frozen=True, slots=True)
class PEHeaders:
    """Everything the section, export and import decoders need to start.

    Attributes:
        width: PE32 or PE32+.
        machine: COFF ``Machine`` value.
        number_of_sections: Declared section count.
        section_table_offset: File offset of the first section header.
        export_directory: Data directory entry 0.
        import_directory: Data directory entry 1.
    """

    width: Width
    machine: int
    number_of_sections: int
    section_table_offset: int
    export_directory: DataDirectory
    import_directory: DataDirectory

    @property
    def is_x64(self) -> bool:
        return self.width.is_x64


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

def decode_headers(src: ByteSource) -> PEHeaders:
    """Validate the DOS/NT headers and decode the optional header.

    Raises:
        InvalidFormat: Missing ``MZ`` or ``PE\\0\\0`` signature.
        UnsupportedArchitecture: Unknown optional-header magic.
        OutOfBounds: A header field lies past the end of the file.
    """
    if src.size < len(MZ_MAGIC) or src.read(0, 2) != MZ_MAGIC:
        raise InvalidFormat("missing MZ signature at offset 0")

    nt_offset = src.u32(E_LFANEW_OFFSET)
    if nt_offset + len(PE_MAGIC) > src.size or src.read(nt_offset, 4) != PE_MAGIC:
        raise InvalidFormat(f"missing PE signature at offset 0x{nt_offset:x}")

    coff_offset = nt_offset + len(PE_MAGIC)
    (
        machine,
        number_of_sections,
        _time_date_stamp,
        _pointer_to_symbol_table,
        _number_of_symbols,
        size_of_optional_header,
        _characteristics,
    ) = src.unpack(_COFF_HEADER, coff_offset)

    optional_offset = coff_offset + COFF_HEADER_SIZE
    width = Width.from_magic(src.u16(optional_offset))

    rva_count = src.u32(optional_offset + width.number_of_rva_and_sizes_offset)
    directories_offset = optional_offset + width.data_directory_offset

    return PEHeaders(
        width=width,
        machine=machine,
        number_of_sections=number_of_sections,
        section_table_offset=optional_offset + size_of_optional_header,
        export_directory=_data_directory(
            src, directories_offset, rva_count, IMAGE_DIRECTORY_ENTRY_EXPORT
        ),
        import_directory=_data_directory(
            src, directories_offset, rva_count, IMAGE_DIRECTORY_ENTRY_IMPORT
        ),
    )


def _data_directory(
    src: ByteSource, offset: int, count: int, index: int
) -> DataDirectory:
    # Entries past NumberOfRvaAndSizes are absent even if bytes follow.
    if index >= count:
        return DataDirectory()
    rva, size = src.unpack(_DATA_DIRECTORY, offset + index * _DATA_DIRECTORY.size)
    return DataDirectory(rva=rva, size=size)
