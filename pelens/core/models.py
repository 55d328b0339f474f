"""
PELens Data Models
===================

Immutable pydantic models describing the structural layout of a PE image:
its sections, export table and import table.

Python attribute names are snake_case.  The camelCase names used by the
JSON report are declared as field aliases: models accept either form on
input, and ``model_dump(by_alias=True)`` yields ``isX64``,
``virtualAddress``, ``dllName`` and so on.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pydantic v2 documentation. https://docs.pydantic.dev/latest/
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_U16 = 0xFFFF
_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the camelCase report field names."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class Section(_FrozenModel):
    """A single entry of the section table.

    Attributes:
        name: Section name, at most 8 bytes, NUL padding trimmed.
        raw_pointer: File offset of the section's raw data.
        virtual_address: RVA of the section start.
        virtual_end: RVA one past the section end,
            ``virtual_address + max(virtual_size, raw_size)``.
        virtual_size: VirtualSize as declared in the header.
        raw_size: SizeOfRawData as declared in the header.
    """

    name: str = Field(max_length=8)
    raw_pointer: int = Field(ge=0, le=_U32, alias="rawPointer")
    virtual_address: int = Field(ge=0, le=_U32, alias="virtualAddress")
    virtual_end: int = Field(ge=0, alias="virtualEnd")
    virtual_size: int = Field(default=0, ge=0, le=_U32, alias="virtualSize")
    raw_size: int = Field(default=0, ge=0, le=_U32, alias="rawSize")

    @model_validator(mode="after")
    def _check_extent(self) -> Section:
        if self.virtual_end < self.virtual_address:
            raise ValueError("virtual_end must not precede virtual_address")
        return self

    def contains(self, rva: int) -> bool:
        """Return ``True`` if *rva* lies in ``[virtual_address, virtual_end)``."""
        return self.virtual_address <= rva < self.virtual_end


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

class ExportEntry(_FrozenModel):
    """One slot of the export address table.

    Attributes:
        ordinal: Ordinal base plus the address-table index.
        address: RVA of the exported symbol (or of a forwarder string).
        name: Exported name, empty for ordinal-only exports.
    """

    ordinal: int = Field(ge=0)
    address: int = Field(ge=0, le=_U32)
    name: str = ""

    @property
    def is_named(self) -> bool:
        return bool(self.name)


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

class ImportFunction(_FrozenModel):
    """A single thunk of a library's import lookup table.

    Exactly one representation is meaningful: ``ordinal`` when
    ``is_ordinal`` is set, ``hint`` and ``name`` otherwise.  The unused
    fields are held at their zero values.
    """

    is_ordinal: bool = Field(alias="isOrdinal")
    ordinal: int = Field(default=0, ge=0, le=_U16)
    hint: int = Field(default=0, ge=0, le=_U16)
    name: str = ""

    @model_validator(mode="after")
    def _check_representation(self) -> ImportFunction:
        if self.is_ordinal:
            if self.name or self.hint:
                raise ValueError("ordinal import must not carry a name or hint")
        elif self.ordinal:
            raise ValueError("named import must not carry an ordinal")
        elif not self.name:
            raise ValueError("named import must have a non-empty name")
        return self

    @classmethod
    def by_ordinal(cls, ordinal: int) -> ImportFunction:
        return cls(is_ordinal=True, ordinal=ordinal)

    @classmethod
    def by_name(cls, hint: int, name: str) -> ImportFunction:
        return cls(is_ordinal=False, hint=hint, name=name)

    @property
    def display_name(self) -> str:
        """Name for presentation: the symbol name or ``#<ordinal>``."""
        return f"#{self.ordinal}" if self.is_ordinal else self.name


class ImportLibrary(_FrozenModel):
    """An imported DLL and the functions taken from it, in thunk order."""

    dll_name: str = Field(alias="dllName")
    functions: tuple[ImportFunction, ...] = ()


# ---------------------------------------------------------------------------
# Analysis result
# ---------------------------------------------------------------------------

class AnalysisResult(_FrozenModel):
    """Complete structural description of one PE file.

    Attributes:
        path: Path the file was read from.
        size: Total file length in bytes (ground truth, not a header field).
        is_x64: ``True`` for PE32+ images.
        machine: COFF ``Machine`` field.
        architecture: Human-readable machine name.
        sections: Section table in file order.
        exports: Export address table in ordinal order.
        imports: Import descriptors in file order.
    """

    path: str
    size: int = Field(ge=0, le=_U64)
    is_x64: bool = Field(alias="isX64")
    machine: int = Field(default=0, ge=0, le=_U16)
    architecture: str = "unknown"
    sections: tuple[Section, ...] = ()
    exports: tuple[ExportEntry, ...] = ()
    imports: tuple[ImportLibrary, ...] = ()

    @property
    def bits(self) -> int:
        return 64 if self.is_x64 else 32

    @property
    def export_count(self) -> int:
        return len(self.exports)

    @property
    def import_function_count(self) -> int:
        """Total number of imported functions across all libraries."""
        return sum(len(lib.functions) for lib in self.imports)
