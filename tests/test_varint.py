import io

import pytest

from baml_core import FramingMismatchError, Record, RecordType, TruncatedRecordError
from baml_core.binary import BamlReader
from baml_core.records import decode_payload, encode_record, shape_for
from baml_core.varint import (
    decode_varint,
    encode_varint,
    encoded_width,
    legacy_sized_total,
    sized_total,
)

BOUNDARIES = [0x7F, 0x3FFF, 0x1FFFFF, 0xFFFFFFF]


def _around(limits, spread=6):
    values = set()
    for limit in limits:
        values.update(range(max(0, limit - spread), limit + spread))
    return sorted(values)


@pytest.mark.parametrize(
    "value,encoded",
    [
        (0, b"\x00"),
        (1, b"\x01"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (300, b"\xac\x02"),
        (16383, b"\xff\x7f"),
        (16384, b"\x80\x80\x01"),
        (0xFFFFFFFF, b"\xff\xff\xff\xff\x0f"),
    ],
)
def test_known_encodings(value, encoded):
    assert encode_varint(value) == encoded
    assert decode_varint(encoded) == (value, len(encoded))


@pytest.mark.parametrize("value", _around(BOUNDARIES, spread=2))
def test_width_matches_encoding(value):
    assert encoded_width(value) == len(encode_varint(value))


def test_decode_at_offset():
    assert decode_varint(b"\xff\xac\x02\x00", offset=1) == (300, 2)


def test_encode_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_varint(-1)
    with pytest.raises(ValueError):
        encode_varint(0x1_0000_0000)


def test_decode_rejects_overlong():
    with pytest.raises(FramingMismatchError):
        decode_varint(b"\x80\x80\x80\x80\x80\x01")


@pytest.mark.parametrize("encoded", [b"\xff\xff\xff\xff\x10", b"\xff\xff\xff\xff\x7f"])
def test_decode_rejects_values_above_uint32(encoded):
    with pytest.raises(FramingMismatchError, match="above"):
        decode_varint(encoded)


def test_decode_truncated():
    with pytest.raises(TruncatedRecordError):
        decode_varint(b"\x80\x80")


@pytest.mark.parametrize("payload_len", _around(BOUNDARIES))
def test_sized_total_includes_its_own_width(payload_len):
    total = sized_total(payload_len)
    assert total == payload_len + len(encode_varint(total))


@pytest.mark.parametrize("payload_len", _around(BOUNDARIES, spread=8))
def test_legacy_formula_agrees_at_width_boundaries(payload_len):
    assert legacy_sized_total(payload_len) == sized_total(payload_len)


@pytest.mark.parametrize("text_len", _around([0x7F, 0x3FFF], spread=4))
def test_sized_record_prefix_equals_bytes_after_opcode(text_len):
    record = Record.create(RecordType.Text, value="a" * text_len)
    data, slot = encode_record(record)
    assert slot is None

    prefix, _ = decode_varint(data, offset=1)
    assert prefix == len(data) - 1

    reader = BamlReader(io.BytesIO(data[1:]), base=1)
    decoded, _ = decode_payload(shape_for(data[0]), reader)
    assert decoded == record
    assert reader.at_end()
