"""
Synthetic PE image builder.

Assembles small but structurally complete PE32 / PE32+ images in memory:
DOS stub, NT headers, optional header with a 16-entry data-directory
array, section table, and section bodies.  Export and import tables are
laid out inside their own data sections by :class:`DataBlob`, which hands
back the RVA of every piece it appends.

Sections are placed one per 0x1000 of virtual address space in the order
they are added, so each data blob must stay below 4 KiB.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

MACHINE_I386 = 0x14C
MACHINE_AMD64 = 0x8664

NT_OFFSET = 0x40
FILE_ALIGNMENT = 0x200
SECTION_ALIGNMENT = 0x1000
HEADERS_SIZE = 0x400


def _align(value: int, alignment: int) -> int:
    return (value + alignment - 1) // alignment * alignment


@dataclass(frozen=True)
class RawThunk:
    """A thunk value written verbatim, bypassing name/ordinal encoding."""

    value: int


# An import is an ordinal (int), a name (hint 0), a (hint, name) pair,
# or a raw thunk value.
ImportSpec = Union[int, str, Tuple[int, str], RawThunk]


@dataclass
class SectionSpec:
    name: bytes
    data: bytearray
    virtual_address: int
    virtual_size: int | None = None
    raw_size: int | None = None


class DataBlob:
    """Append-only section body that returns the RVA of each appended piece."""

    def __init__(self, spec: SectionSpec) -> None:
        self.base_rva = spec.virtual_address
        self.data = spec.data

    def add(self, raw: bytes, align: int = 4) -> int:
        while len(self.data) % align:
            self.data.append(0)
        rva = self.base_rva + len(self.data)
        self.data.extend(raw)
        return rva

    def cstring(self, text: str) -> int:
        return self.add(text.encode("utf-8") + b"\x00", align=2)


class PEBuilder:
    """Build a PE image byte string.

    Usage::

        builder = PEBuilder(x64=True)
        builder.add_section(".text", b"\\xc3" * 16)
        builder.with_exports([0x1000], [("Run", 0)])
        image = builder.build()
    """

    def __init__(
        self,
        *,
        x64: bool = False,
        machine: int | None = None,
        magic: int | None = None,
        number_of_rva_and_sizes: int = 16,
    ) -> None:
        self.x64 = x64
        self.machine = machine if machine is not None else (
            MACHINE_AMD64 if x64 else MACHINE_I386
        )
        self.magic = magic if magic is not None else (0x20B if x64 else 0x10B)
        self.number_of_rva_and_sizes = number_of_rva_and_sizes
        self.sections: list[SectionSpec] = []
        self.export_directory: tuple[int, int] = (0, 0)
        self.import_directory: tuple[int, int] = (0, 0)
        self.pad_last_section = True

    # ------------------------------------------------------------------ #
    #  Layout
    # ------------------------------------------------------------------ #

    @property
    def data_directory_offset(self) -> int:
        return 0x70 if self.x64 else 0x60

    @property
    def optional_header_size(self) -> int:
        return self.data_directory_offset + 16 * 8

    @property
    def optional_header_offset(self) -> int:
        return NT_OFFSET + 4 + 20

    @property
    def section_table_offset(self) -> int:
        return self.optional_header_offset + self.optional_header_size

    @property
    def thunk_size(self) -> int:
        return 8 if self.x64 else 4

    def _next_rva(self) -> int:
        if not self.sections:
            return SECTION_ALIGNMENT
        return self.sections[-1].virtual_address + SECTION_ALIGNMENT

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    def add_section(
        self,
        name: str | bytes,
        data: bytes = b"",
        *,
        virtual_address: int | None = None,
        virtual_size: int | None = None,
        raw_size: int | None = None,
    ) -> SectionSpec:
        spec = SectionSpec(
            name=name.encode("ascii") if isinstance(name, str) else name,
            data=bytearray(data),
            virtual_address=(
                virtual_address if virtual_address is not None else self._next_rva()
            ),
            virtual_size=virtual_size,
            raw_size=raw_size,
        )
        self.sections.append(spec)
        return spec

    def add_data_section(self, name: str = ".rdata") -> DataBlob:
        return DataBlob(self.add_section(name))

    # ------------------------------------------------------------------ #
    #  Directories
    # ------------------------------------------------------------------ #

    def with_exports(
        self,
        addresses: Sequence[int],
        names: Sequence[tuple[str, int]] = (),
        *,
        base: int = 1,
        dll_name: str = "test.dll",
        functions_rva: int | None = None,
    ) -> int:
        """Lay out an export directory.

        *names* pairs an exported name with the address-table slot it
        labels; pairs are written in the given order.
        """
        blob = self.add_data_section(".edata")
        name_rva = blob.cstring(dll_name)
        name_rvas = [blob.cstring(name) for name, _ in names]

        table_rva = blob.add(struct.pack(f"<{len(addresses)}I", *addresses))
        names_rva = blob.add(struct.pack(f"<{len(names)}I", *name_rvas))
        ordinals_rva = blob.add(
            struct.pack(f"<{len(names)}H", *(slot for _, slot in names))
        )

        directory_rva = blob.add(
            struct.pack(
                "<IIHHIIIIIII",
                0, 0, 0, 0,
                name_rva,
                base,
                len(addresses),
                len(names),
                table_rva if functions_rva is None else functions_rva,
                names_rva,
                ordinals_rva,
            )
        )
        self.export_directory = (directory_rva, 40)
        return directory_rva

    def with_imports(
        self,
        libraries: Sequence[tuple[str, Sequence[ImportSpec]]],
        *,
        use_lookup_table: bool = True,
        terminate: bool = True,
    ) -> int:
        """Lay out an import descriptor array and its thunk tables.

        With ``terminate=False`` the descriptor array is written without
        its all-zero record at the very end of the file.
        """
        blob = self.add_data_section(".idata")
        fmt = "<Q" if self.x64 else "<I"
        ordinal_flag = 1 << (self.thunk_size * 8 - 1)

        descriptors = []
        for dll_name, functions in libraries:
            name_rva = blob.cstring(dll_name)
            values = []
            for fn in functions:
                if isinstance(fn, RawThunk):
                    values.append(fn.value)
                elif isinstance(fn, int):
                    values.append(ordinal_flag | fn)
                else:
                    hint, name = fn if isinstance(fn, tuple) else (0, fn)
                    values.append(
                        blob.add(struct.pack("<H", hint) + name.encode("utf-8") + b"\x00", align=2)
                    )
            table = b"".join(struct.pack(fmt, v) for v in [*values, 0])
            lookup_rva = blob.add(table, align=self.thunk_size) if use_lookup_table else 0
            iat_rva = blob.add(table, align=self.thunk_size)
            descriptors.append(struct.pack("<IIIII", lookup_rva, 0, 0, name_rva, iat_rva))

        if terminate:
            descriptors.append(bytes(20))
        else:
            self.pad_last_section = False

        directory_rva = blob.add(b"".join(descriptors))
        self.import_directory = (directory_rva, 20 * len(descriptors))
        return directory_rva

    # ------------------------------------------------------------------ #
    #  Serialisation
    # ------------------------------------------------------------------ #

    def build(self) -> bytes:
        assert self.section_table_offset + 40 * len(self.sections) <= HEADERS_SIZE

        image = bytearray(HEADERS_SIZE)
        image[0:2] = b"MZ"
        struct.pack_into("<I", image, 0x3C, NT_OFFSET)
        image[NT_OFFSET:NT_OFFSET + 4] = b"PE\x00\x00"
        struct.pack_into(
            "<HHIIIHH",
            image,
            NT_OFFSET + 4,
            self.machine,
            len(self.sections),
            0, 0, 0,
            self.optional_header_size,
            0x0102,
        )

        opt = self.optional_header_offset
        dd = opt + self.data_directory_offset
        struct.pack_into("<H", image, opt, self.magic)
        struct.pack_into("<I", image, dd - 4, self.number_of_rva_and_sizes)
        struct.pack_into("<II", image, dd, *self.export_directory)
        struct.pack_into("<II", image, dd + 8, *self.import_directory)

        raw_pointer = HEADERS_SIZE
        bodies = []
        for index, sec in enumerate(self.sections):
            body = bytes(sec.data)
            is_last = index == len(self.sections) - 1
            if self.pad_last_section or not is_last:
                body = body.ljust(_align(len(body), FILE_ALIGNMENT), b"\x00")

            struct.pack_into(
                "<8sIIIIIIHHI",
                image,
                self.section_table_offset + 40 * index,
                sec.name,
                len(sec.data) if sec.virtual_size is None else sec.virtual_size,
                sec.virtual_address,
                len(body) if sec.raw_size is None else sec.raw_size,
                raw_pointer if body else 0,
                0, 0, 0, 0,
                0x40000040,
            )
            bodies.append(body)
            raw_pointer += len(body)

        return bytes(image) + b"".join(bodies)


# ---------------------------------------------------------------------------
# Canned images
# ---------------------------------------------------------------------------

SAMPLE_EXPORT_ADDRESSES = (0x1000, 0x1010, 0x1020)
SAMPLE_EXPORT_NAMES = (("Alpha", 0), ("Gamma", 2))
SAMPLE_EXPORT_BASE = 5
SAMPLE_IMPORTS = (
    ("KERNEL32.dll", [(0x10, "ExitProcess"), 17]),
    ("USER32.dll", [(1, "MessageBoxA")]),
)


def sample_builder(*, x64: bool = False) -> PEBuilder:
    """A DLL with a code section, three exports and two imported libraries."""
    builder = PEBuilder(x64=x64)
    builder.add_section(".text", b"\xc3" * 0x30)
    builder.with_exports(
        SAMPLE_EXPORT_ADDRESSES,
        SAMPLE_EXPORT_NAMES,
        base=SAMPLE_EXPORT_BASE,
        dll_name="sample.dll",
    )
    builder.with_imports(SAMPLE_IMPORTS)
    return builder


def minimal_image(*, x64: bool = False) -> bytes:
    """A valid image with one section and no export or import table."""
    builder = PEBuilder(x64=x64)
    builder.add_section(".text", b"\xc3" * 16)
    return builder.build()
