"""In-memory BAML document: records plus the tables the two passes fill in."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from baml_core.protocol import RecordType
from baml_core.records import Record


@dataclass
class Document:
    """Ordered records of one BAML stream.

    - `references`: index of each deferred record -> index of its target.
    - `positions`: absolute start offset of each record in the stream it was
      last read from or written to. Empty for a hand-built document.
    """

    records: list[Record] = field(default_factory=list)
    references: dict[int, int] = field(default_factory=dict)
    positions: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def append(self, record: Record, target: int | None = None) -> int:
        """Append a record, optionally pointing it at the record with index `target`."""
        self.records.append(record)
        index = len(self.records) - 1
        if target is not None:
            self.references[index] = target
        return index

    def target(self, index: int) -> Record | None:
        target = self.references.get(index)
        return None if target is None else self.records[target]

    def deferred_indices(self) -> list[int]:
        return [i for i, rec in enumerate(self.records) if rec.shape.reference is not None]

    def records_of_type(self, record_type: RecordType) -> list[Record]:
        return [rec for rec in self.records if rec.type == record_type]

    def same_content(self, other: Document) -> bool:
        """Equal records and references; positions are ignored."""
        return self.records == other.records and self.references == other.references
