"""BAML Writer - serialize a Document, then back-patch deferred offsets."""
from __future__ import annotations

import io
from typing import BinaryIO

from baml_core.binary import BamlWriter
from baml_core.document import Document
from baml_core.protocol import HEADER_BYTES
from baml_core.records import encode_record
from baml_core.resolver import DeferredSlot, apply_patches, plan_patches


def write_document(document: Document, stream: BinaryIO) -> None:
    """Write header and records, then patch placeholders in place.

    `stream` must be seekable. On return `document.positions` holds the new
    record offsets and the cursor is at the end of the written data.
    Raises UnsupportedRecordTypeError or UnresolvedReferenceError.
    """
    writer = BamlWriter(stream)
    writer.write_bytes(HEADER_BYTES)

    positions: list[int] = []
    slots: list[DeferredSlot] = []

    for index, record in enumerate(document.records):
        pos = writer.tell()
        data, slot = encode_record(record)
        writer.write_bytes(data)

        positions.append(pos)
        if slot is not None:
            slots.append(DeferredSlot(index, record.shape.reference, pos + slot))

    patches = plan_patches(document.records, positions, slots, document.references)
    apply_patches(stream, patches)
    document.positions = positions


def dumps(document: Document) -> bytes:
    buf = io.BytesIO()
    write_document(document, buf)
    return buf.getvalue()
