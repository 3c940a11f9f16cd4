"""7-bit encoded integers (.NET Write7BitEncodedInt layout).

Low-order group first, high bit set on every byte except the last:
- 0 .. 127: 1 byte
- 128 .. 16,383: 2 bytes
- 16,384 .. 2,097,151: 3 bytes
- 2,097,152 .. 268,435,455: 4 bytes
- up to 0xFFFFFFFF: 5 bytes
"""
from __future__ import annotations

from baml_core.errors import FramingMismatchError, TruncatedRecordError
from baml_core.protocol import MAX_ENCODED_INT, MAX_ENCODED_INT_BYTES

# Largest value representable in N bytes, N = 1..4
_WIDTH_LIMITS = (0x7F, 0x3FFF, 0x1FFFFF, 0xFFFFFFF)


def encode_varint(value: int) -> bytes:
    """Encode a non-negative int32-range integer.

    >>> encode_varint(127)
    b'\\x7f'
    >>> encode_varint(300)
    b'\\xac\\x02'
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value: {value}")
    if value > MAX_ENCODED_INT:
        raise ValueError(f"Value {value} exceeds encoded int range")

    result = bytearray()
    while value > 0x7F:
        result.append((value & 0x7F) | 0x80)
        value >>= 7
    result.append(value)
    return bytes(result)


def decode_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode from `data` at `offset`. Returns (value, bytes_consumed).

    >>> decode_varint(b'\\xac\\x02')
    (300, 2)
    """
    result = 0
    consumed = 0
    while True:
        if consumed >= MAX_ENCODED_INT_BYTES:
            raise FramingMismatchError(
                f"FATAL: Encoded int at offset {offset} is longer than {MAX_ENCODED_INT_BYTES} bytes"
            )
        if offset + consumed >= len(data):
            raise TruncatedRecordError(f"FATAL: Truncated encoded int at offset {offset}")

        byte = data[offset + consumed]
        result |= (byte & 0x7F) << (7 * consumed)
        consumed += 1
        if not byte & 0x80:
            if result > MAX_ENCODED_INT:
                raise FramingMismatchError(
                    f"FATAL: Encoded int at offset {offset} decodes to {result}, above {MAX_ENCODED_INT:#x}"
                )
            return result, consumed


def encoded_width(value: int) -> int:
    """Number of bytes `encode_varint(value)` produces."""
    for width, limit in enumerate(_WIDTH_LIMITS, start=1):
        if value <= limit:
            return width
    return MAX_ENCODED_INT_BYTES


def sized_total(payload_len: int) -> int:
    """Length prefix for a sized record: payload plus the prefix's own width.

    Solves total == payload_len + encoded_width(total). Widths only grow and
    stop at 5, so the loop runs at most a handful of times.
    """
    width = encoded_width(payload_len)
    while True:
        total = payload_len + width
        new_width = encoded_width(total)
        if new_width == width:
            return total
        width = new_width


def legacy_sized_total(payload_len: int) -> int:
    """Single-correction form w(w(L) + L) + L used by existing BAML writers."""
    return encoded_width(encoded_width(payload_len) + payload_len) + payload_len
