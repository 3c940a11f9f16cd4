"""BAML Reader - decode a byte stream into a Document.

One forward pass over the records, then one resolution pass for deferred
references. The whole stream is materialized before resolution begins.
"""
from __future__ import annotations

import io
import struct
from typing import BinaryIO

from baml_core.binary import BamlReader
from baml_core.document import Document
from baml_core.errors import InvalidSignatureError, TruncatedRecordError
from baml_core.protocol import (
    DEFAULT_MAX_RECORD_SIZE,
    SIGNATURE,
    SIGNATURE_ENCODING,
    SIGNATURE_LEN_FMT,
    VERSION,
    VERSION_FMT,
)
from baml_core.records import decode_payload, shape_for
from baml_core.resolver import DeferredSlot, resolve_references

_SIG_LEN = len(SIGNATURE.encode(SIGNATURE_ENCODING))


def read_header(reader: BamlReader) -> None:
    """Verify signature and version triple. Raises InvalidSignatureError."""
    try:
        (sig_len,) = struct.unpack(SIGNATURE_LEN_FMT, reader.read_bytes(4))
        if sig_len != _SIG_LEN:
            raise InvalidSignatureError(f"FATAL: Invalid signature length {sig_len}")

        raw = reader.read_bytes(sig_len)
        if raw.decode(SIGNATURE_ENCODING, errors="replace") != SIGNATURE:
            raise InvalidSignatureError(f"FATAL: Invalid signature {raw!r}")
        reader.read_bytes(-sig_len % 4)

        for label in ("reader", "updater", "writer"):
            version = struct.unpack(VERSION_FMT, reader.read_bytes(4))
            if version != VERSION:
                raise InvalidSignatureError(
                    f"FATAL: Unsupported {label} version {version[0]}.{version[1]:#x}"
                )
    except TruncatedRecordError as e:
        raise InvalidSignatureError(f"FATAL: Truncated header: {e}") from e


def read_document(stream: BinaryIO, max_record_size: int = DEFAULT_MAX_RECORD_SIZE) -> Document:
    """Decode a complete BAML stream.

    Raises InvalidSignatureError, UnsupportedRecordTypeError,
    FramingMismatchError or UnresolvedReferenceError.
    """
    reader = BamlReader(stream, max_string_size=max_record_size)
    read_header(reader)

    doc = Document()
    slots: list[DeferredSlot] = []

    while True:
        pos = reader.tell()
        opcode = stream.read(1)
        if not opcode:
            break

        shape = shape_for(opcode[0], pos)
        record, slot = decode_payload(shape, reader, max_record_size)

        index = len(doc.records)
        doc.records.append(record)
        doc.positions.append(pos)
        if slot is not None:
            slots.append(DeferredSlot(index, shape.reference, slot[0], slot[1]))

    doc.references = resolve_references(doc.records, doc.positions, slots)
    return doc


def loads(data: bytes, max_record_size: int = DEFAULT_MAX_RECORD_SIZE) -> Document:
    return read_document(io.BytesIO(data), max_record_size)
