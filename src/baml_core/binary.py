"""Little-endian primitive reads and writes over binary streams."""
from __future__ import annotations

import struct
from typing import BinaryIO

from baml_core.errors import FramingMismatchError, TruncatedRecordError
from baml_core.protocol import DEFAULT_MAX_RECORD_SIZE, MAX_ENCODED_INT_BYTES
from baml_core.varint import decode_varint, encode_varint

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

# Reads longer than this are issued in pieces
READ_CHUNK = 64 * 1024


class BamlReader:
    """Primitive reader. `base` is added to stream offsets so that a payload
    read from an in-memory slice still reports absolute positions.
    `max_string_size` bounds the declared length of a single string."""

    def __init__(self, stream: BinaryIO, base: int = 0, max_string_size: int = DEFAULT_MAX_RECORD_SIZE):
        self.stream = stream
        self.base = base
        self.max_string_size = max_string_size

    def tell(self) -> int:
        return self.base + self.stream.tell()

    def at_end(self) -> bool:
        pos = self.stream.tell()
        more = self.stream.read(1)
        self.stream.seek(pos)
        return not more

    def read_bytes(self, n: int) -> bytes:
        start = self.tell()
        if n <= READ_CHUNK:
            data = self.stream.read(n)
        else:
            parts = []
            remaining = n
            while remaining:
                part = self.stream.read(min(remaining, READ_CHUNK))
                if not part:
                    break
                parts.append(part)
                remaining -= len(part)
            data = b"".join(parts)
        if len(data) != n:
            raise TruncatedRecordError(
                f"FATAL: Stream ended at offset {start + len(data)}, expected {n} bytes from {start}"
            )
        return data

    def read_rest(self) -> bytes:
        return self.stream.read()

    def read_u8(self) -> int:
        return _U8.unpack(self.read_bytes(1))[0]

    def read_bool(self) -> bool:
        return self.read_u8() != 0

    def read_u16(self) -> int:
        return _U16.unpack(self.read_bytes(2))[0]

    def read_u32(self) -> int:
        return _U32.unpack(self.read_bytes(4))[0]

    def read_encoded_int(self) -> int:
        buf = bytearray()
        while True:
            byte = self.read_u8()
            buf.append(byte)
            if not byte & 0x80 or len(buf) >= MAX_ENCODED_INT_BYTES:
                break
        value, _ = decode_varint(bytes(buf))
        return value

    def read_string(self) -> str:
        start = self.tell()
        length = self.read_encoded_int()
        if length > self.max_string_size:
            raise FramingMismatchError(
                f"FATAL: String at offset {start} declares {length} bytes, limit is {self.max_string_size}"
            )
        raw = self.read_bytes(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FramingMismatchError(f"FATAL: Invalid UTF-8 string at offset {start}: {e}") from e


class BamlWriter:
    """Primitive writer, the mirror of BamlReader."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def tell(self) -> int:
        return self.stream.tell()

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def write_u8(self, value: int) -> None:
        self.stream.write(_U8.pack(value))

    def write_bool(self, value: bool) -> None:
        self.write_u8(1 if value else 0)

    def write_u16(self, value: int) -> None:
        self.stream.write(_U16.pack(value))

    def write_u32(self, value: int) -> None:
        self.stream.write(_U32.pack(value))

    def write_encoded_int(self, value: int) -> None:
        self.stream.write(encode_varint(value))

    def write_string(self, value: str) -> None:
        raw = value.encode("utf-8")
        self.write_encoded_int(len(raw))
        self.stream.write(raw)
