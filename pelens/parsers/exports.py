"""
Export Table Decoder
=====================

Decodes the ``IMAGE_EXPORT_DIRECTORY`` referenced by data directory 0.

Every slot of the export address table becomes one
:class:`~pelens.core.models.ExportEntry` whose ordinal is the directory's
ordinal base plus the slot index.  The name-pointer table and the ordinal
table are parallel arrays: entry *i* of the ordinal table gives the
address-table slot that name *i* belongs to.  Slots no name points at stay
ordinal-only.

Forwarder exports (an address inside the export directory itself) are
reported as plain addresses.  A malformed export table cannot be partially
trusted, so any unmappable RVA or out-of-range index met during the walk
aborts the decode with :class:`~pelens.core.errors.CorruptDirectory`.
"""

from __future__ import annotations

import struct

from pelens.core.errors import CorruptDirectory, OutOfBounds, UnmappedAddress
from pelens.core.models import ExportEntry
from pelens.parsers.byte_source import ByteSource, decode_name
from pelens.parsers.headers import PEHeaders
from pelens.parsers.sections import SectionMap

# Characteristics, TimeDateStamp, MajorVersion, MinorVersion, Name, Base,
# NumberOfFunctions, NumberOfNames, AddressOfFunctions, AddressOfNames,
# AddressOfNameOrdinals
_EXPORT_DIRECTORY = struct.Struct("<IIHHIIIIIII")


def decode_exports(
    src: ByteSource,
    headers: PEHeaders,
    sections: SectionMap,
    *,
    max_name_length: int = 4096,
) -> tuple[ExportEntry, ...]:
    """Decode the export table, or return ``()`` when the image has none.

    Raises:
        UnmappedAddress: The export directory RVA itself is not mapped.
        CorruptDirectory: The tables it references cannot be walked safely.
    """
    directory = headers.export_directory
    if not directory.present:
        return ()

    fields = src.unpack(_EXPORT_DIRECTORY, sections.translate(directory.rva))
    (
        ordinal_base,
        number_of_functions,
        number_of_names,
        functions_rva,
        names_rva,
        ordinals_rva,
    ) = fields[5:]

    addresses = _read_array(src, sections, functions_rva, number_of_functions, "I", "address table")
    names = [""] * number_of_functions

    if number_of_names:
        name_rvas = _read_array(src, sections, names_rva, number_of_names, "I", "name pointer table")
        indices = _read_array(src, sections, ordinals_rva, number_of_names, "H", "ordinal table")

        for name_rva, index in zip(name_rvas, indices):
            if index >= number_of_functions:
                raise CorruptDirectory(
                    f"export ordinal index {index} outside address table "
                    f"of {number_of_functions} entries"
                )
            # A slot named twice keeps its first name.
            if not names[index]:
                names[index] = _read_name(src, sections, name_rva, max_name_length)

    return tuple(
        ExportEntry(ordinal=ordinal_base + i, address=address, name=names[i])
        for i, address in enumerate(addresses)
    )


def _read_array(
    src: ByteSource,
    sections: SectionMap,
    rva: int,
    count: int,
    code: str,
    label: str,
) -> tuple[int, ...]:
    """Read *count* little-endian integers of type *code* starting at *rva*."""
    if count == 0:
        return ()
    try:
        offset = sections.translate(rva)
        return src.unpack(f"<{count}{code}", offset)
    except UnmappedAddress as exc:
        raise CorruptDirectory(f"export {label} at RVA 0x{rva:x} is unmapped") from exc
    except OutOfBounds as exc:
        raise CorruptDirectory(
            f"export {label} of {count} entries at RVA 0x{rva:x} "
            f"extends past end of file"
        ) from exc


def _read_name(src: ByteSource, sections: SectionMap, rva: int, limit: int) -> str:
    try:
        return decode_name(src.cstring(sections.translate(rva), limit))
    except UnmappedAddress as exc:
        raise CorruptDirectory(f"export name at RVA 0x{rva:x} is unmapped") from exc
    except OutOfBounds as exc:
        raise CorruptDirectory(f"export name at RVA 0x{rva:x} is unterminated") from exc
