"""Element tree reconstruction.

The record stream is flat; nesting is implied by header records (ElementStart,
PropertyComplexStart, ...) and their footers. Some producers omit footers,
so a footer that does not match the open element closes ancestors until one
matches.
"""
from __future__ import annotations

from typing import Any, Iterator, Sequence
from warnings import warn

from baml_core.errors import (
    OmittedFooterWarning,
    UnexpectedBodyRecordError,
    UnexpectedFooterError,
    UnterminatedStructureError,
)
from baml_core.protocol import RecordType
from baml_core.records import Record

# header -> footers that close it
MATCHING_FOOTERS: dict[RecordType, frozenset[RecordType]] = {
    RecordType.DocumentStart: frozenset({RecordType.DocumentEnd}),
    RecordType.ElementStart: frozenset({RecordType.ElementEnd}),
    RecordType.NamedElementStart: frozenset({RecordType.ElementEnd}),
    RecordType.KeyElementStart: frozenset({RecordType.KeyElementEnd}),
    RecordType.PropertyArrayStart: frozenset({RecordType.PropertyArrayEnd}),
    RecordType.PropertyComplexStart: frozenset({RecordType.PropertyComplexEnd}),
    RecordType.PropertyDictionaryStart: frozenset({RecordType.PropertyDictionaryEnd}),
    RecordType.PropertyListStart: frozenset({RecordType.PropertyListEnd}),
    RecordType.StaticResourceStart: frozenset({RecordType.StaticResourceEnd}),
    RecordType.ConstructorParametersStart: frozenset({RecordType.ConstructorParametersEnd}),
}

HEADERS = frozenset(MATCHING_FOOTERS)
FOOTERS = frozenset().union(*MATCHING_FOOTERS.values())


def is_header(record: Record) -> bool:
    return record.type in HEADERS


def is_footer(record: Record) -> bool:
    return record.type in FOOTERS


def is_match(header: Record, footer: Record) -> bool:
    return footer.type in MATCHING_FOOTERS.get(header.type, frozenset())


class Element:
    """A header record, the plain records directly inside it, its child
    elements and its footer (None when the producer omitted it)."""

    def __init__(self, header: Record, parent: Element | None = None):
        self.header = header
        self.parent = parent
        self.body: list[Record] = []
        self.children: list[Element] = []
        self.footer: Record | None = None

    def __repr__(self) -> str:
        return f"Element({self.header.name}, body={len(self.body)}, children={len(self.children)})"

    @property
    def depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def walk(self) -> Iterator[Element]:
        """Depth-first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.name,
            "fields": _jsonable(self.header.as_dict()),
            "body": [{"type": r.name, "fields": _jsonable(r.as_dict())} for r in self.body],
            "children": [child.to_dict() for child in self.children],
            "footer": self.footer.name if self.footer is not None else None,
        }


def _jsonable(values: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in values.items():
        if isinstance(value, bytes):
            out[key] = value.hex()
        elif isinstance(value, tuple):
            out[key] = list(value)
        else:
            out[key] = value
    return out


def build_tree(records: Sequence[Record]) -> Element:
    """Rebuild the element tree from a fully decoded record sequence.

    Raises UnexpectedFooterError, UnexpectedBodyRecordError or
    UnterminatedStructureError. Elements closed without a footer trigger an
    OmittedFooterWarning.
    """
    current: Element | None = None
    stack: list[Element] = []

    for index, record in enumerate(records):
        if is_header(record):
            node = Element(record, parent=current)
            if current is not None:
                current.children.append(node)
                stack.append(current)
            current = node

        elif is_footer(record):
            if current is None:
                raise UnexpectedFooterError(f"FATAL: Unexpected footer {record.name} at record {index}")

            while not is_match(current.header, record):
                if not stack:
                    raise UnexpectedFooterError(
                        f"FATAL: Unexpected footer {record.name} at record {index}: no open element matches"
                    )
                warn(
                    f"{current.header.name} closed without footer at record {index}",
                    OmittedFooterWarning,
                    stacklevel=2,
                )
                current = stack.pop()

            current.footer = record
            if stack:
                current = stack.pop()

        else:
            if current is None:
                raise UnexpectedBodyRecordError(f"FATAL: Unexpected record {record.name} at record {index}")
            current.body.append(record)

    if current is None:
        raise UnterminatedStructureError("FATAL: Empty record sequence")
    if stack:
        raise UnterminatedStructureError(
            f"FATAL: {len(stack)} element(s) still open at end of document, innermost {current.header.name}"
        )
    if current.footer is None:
        warn(
            f"{current.header.name} closed without footer at end of document",
            OmittedFooterWarning,
            stacklevel=2,
        )
    return current
