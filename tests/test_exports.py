"""
Tests for export table decoding.
"""

import pytest

from pelens.core.errors import CorruptDirectory, UnmappedAddress
from pelens.core.models import ExportEntry
from pelens.parsers.byte_source import ByteSource
from pelens.parsers.exports import decode_exports
from pelens.parsers.headers import decode_headers
from pelens.parsers.sections import decode_sections

from tests.builder import (
    SAMPLE_EXPORT_BASE,
    PEBuilder,
    minimal_image,
    sample_builder,
)


def _exports(data: bytes, **kwargs):
    src = ByteSource(data)
    headers = decode_headers(src)
    return decode_exports(src, headers, decode_sections(src, headers), **kwargs)


def _builder() -> PEBuilder:
    builder = PEBuilder()
    builder.add_section(".text", b"\xc3" * 0x40)
    return builder


@pytest.mark.parametrize("x64", [False, True])
def test_named_and_ordinal_only(x64):
    exports = _exports(sample_builder(x64=x64).build())
    assert exports == (
        ExportEntry(ordinal=SAMPLE_EXPORT_BASE, address=0x1000, name="Alpha"),
        ExportEntry(ordinal=SAMPLE_EXPORT_BASE + 1, address=0x1010, name=""),
        ExportEntry(ordinal=SAMPLE_EXPORT_BASE + 2, address=0x1020, name="Gamma"),
    )
    assert [e.is_named for e in exports] == [True, False, True]


def test_no_export_directory():
    assert _exports(minimal_image()) == ()


def test_ordinals_ascend_from_base():
    builder = _builder()
    builder.with_exports([0x1000 + i for i in range(10)], base=100)
    exports = _exports(builder.build())
    assert [e.ordinal for e in exports] == list(range(100, 110))
    assert all(e.name == "" for e in exports)


def test_names_written_out_of_order():
    builder = _builder()
    builder.with_exports([0x1000, 0x1004], [("Second", 1), ("First", 0)])
    exports = _exports(builder.build())
    assert [e.name for e in exports] == ["First", "Second"]


def test_zero_address_slot_is_kept():
    builder = _builder()
    builder.with_exports([0x1000, 0, 0x1008])
    exports = _exports(builder.build())
    assert [e.address for e in exports] == [0x1000, 0, 0x1008]


def test_forwarder_address_recorded_verbatim():
    builder = _builder()
    # .edata is placed at 0x2000; an address inside it is a forwarder string.
    builder.with_exports([0x2010], [("Forwarded", 0)])
    (entry,) = _exports(builder.build())
    assert entry.address == 0x2010
    assert entry.name == "Forwarded"


def test_slot_named_twice_keeps_first_name():
    builder = _builder()
    builder.with_exports([0x1000], [("Primary", 0), ("Alias", 0)])
    (entry,) = _exports(builder.build())
    assert entry.name == "Primary"


def test_empty_export_table():
    builder = _builder()
    builder.with_exports([])
    assert _exports(builder.build()) == ()


def test_ordinal_index_outside_address_table():
    builder = _builder()
    builder.with_exports([0x1000, 0x1004], [("Bad", 2)])
    with pytest.raises(CorruptDirectory, match="ordinal index 2"):
        _exports(builder.build())


def test_unmapped_address_table():
    builder = _builder()
    builder.with_exports([0x1000], functions_rva=0x00F0_0000)
    with pytest.raises(CorruptDirectory, match="unmapped"):
        _exports(builder.build())


def test_directory_rva_unmapped_propagates():
    builder = _builder()
    builder.export_directory = (0x00F0_0000, 40)
    with pytest.raises(UnmappedAddress):
        _exports(builder.build())


def test_name_longer_than_limit():
    builder = _builder()
    builder.with_exports([0x1000], [("A" * 64, 0)])
    with pytest.raises(CorruptDirectory, match="unterminated"):
        _exports(builder.build(), max_name_length=16)
    (entry,) = _exports(builder.build(), max_name_length=64)
    assert entry.name == "A" * 64

