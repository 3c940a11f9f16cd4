"""Deferred reference resolution.

Two record flavors point at other records by byte offset:

- Key references (DefAttributeKeyString, DefAttributeKeyType, KeyElementStart)
  store an offset relative to the first record after the run of keys that
  follows them.
- DeferableContentStart stores the number of bytes between the end of its
  size field and the target record.

Offsets are only final once the whole stream is laid out, so resolution is a
second pass: read mode maps offsets to record indices, write mode turns the
indices back into a patch list of (placeholder offset, value).
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Sequence

from baml_core.errors import UnresolvedReferenceError
from baml_core.protocol import PLACEHOLDER_FMT, PLACEHOLDER_LEN, RecordType
from baml_core.records import Record, ReferenceKind

# Records skipped individually while looking for a key run's anchor
KEY_LIKE = frozenset({
    RecordType.DefAttributeKeyString,
    RecordType.DefAttributeKeyType,
    RecordType.OptimizedStaticResource,
})

# Balanced runs skipped as a whole: start -> end
STRUCTURAL_RUNS = {
    RecordType.StaticResourceStart: RecordType.StaticResourceEnd,
    RecordType.KeyElementStart: RecordType.KeyElementEnd,
}

MAX_PLACEHOLDER = 0xFFFFFFFF


@dataclass(frozen=True)
class DeferredSlot:
    index: int
    kind: ReferenceKind
    slot_position: int  # absolute offset of the uint32 placeholder
    stored: int = 0


def skip_key_run(records: Sequence[Record], index: int) -> int:
    """Index of the first record after the keys starting at `index`.

    Walks iteratively; nesting depth is whatever the document says it is.
    """
    count = len(records)
    i = index
    while True:
        if i >= count:
            raise UnresolvedReferenceError(
                f"FATAL: Key run starting at record {index} runs past the end of the document"
            )
        record_type = records[i].type
        if record_type in KEY_LIKE:
            i += 1
            continue

        end_type = STRUCTURAL_RUNS.get(record_type)
        if end_type is None:
            return i

        start_type = record_type
        depth = 0
        while True:
            if i >= count:
                raise UnresolvedReferenceError(
                    f"FATAL: Unterminated {start_type.name} run in key run starting at record {index}"
                )
            current = records[i].type
            if current == start_type:
                depth += 1
            elif current == end_type:
                depth -= 1
                if depth == 0:
                    break
            i += 1
        i += 1


def _key_anchor(records: Sequence[Record], slot: DeferredSlot) -> int:
    # The walk starts at the key record itself, so a KeyElementStart skips its own run
    return skip_key_run(records, slot.index)


def resolve_references(
    records: Sequence[Record],
    positions: Sequence[int],
    slots: Sequence[DeferredSlot],
) -> dict[int, int]:
    """Read mode: map each deferred record's index to its target's index."""
    by_position = {pos: i for i, pos in enumerate(positions)}
    references: dict[int, int] = {}

    for slot in slots:
        if slot.kind is ReferenceKind.KEY:
            anchor = _key_anchor(records, slot)
            target_pos = positions[anchor] + slot.stored
        else:
            target_pos = slot.slot_position + PLACEHOLDER_LEN + slot.stored

        target = by_position.get(target_pos)
        if target is None:
            raise UnresolvedReferenceError(
                f"FATAL: {records[slot.index].type.name} at offset {positions[slot.index]} "
                f"points to offset {target_pos}, where no record starts"
            )
        references[slot.index] = target

    return references


def plan_patches(
    records: Sequence[Record],
    positions: Sequence[int],
    slots: Sequence[DeferredSlot],
    references: dict[int, int],
) -> list[tuple[int, int]]:
    """Write mode: placeholder values computed from the new layout."""
    patches: list[tuple[int, int]] = []

    for slot in slots:
        target = references.get(slot.index)
        if target is None:
            raise UnresolvedReferenceError(
                f"FATAL: {records[slot.index].type.name} at record {slot.index} has no resolved target"
            )
        if not 0 <= target < len(records):
            raise UnresolvedReferenceError(
                f"FATAL: {records[slot.index].type.name} at record {slot.index} targets missing record {target}"
            )

        if slot.kind is ReferenceKind.KEY:
            base = positions[_key_anchor(records, slot)]
        else:
            base = slot.slot_position + PLACEHOLDER_LEN

        value = positions[target] - base
        if not 0 <= value <= MAX_PLACEHOLDER:
            raise UnresolvedReferenceError(
                f"FATAL: {records[slot.index].type.name} at record {slot.index} cannot reach "
                f"record {target} (relative offset {value})"
            )
        patches.append((slot.slot_position, value))

    return patches


def apply_patches(stream: BinaryIO, patches: Sequence[tuple[int, int]]) -> None:
    """Overwrite placeholders in place, then return the cursor to the end."""
    end = stream.seek(0, 2)
    for offset, value in patches:
        stream.seek(offset)
        stream.write(struct.pack(PLACEHOLDER_FMT, value))
    stream.seek(end)
