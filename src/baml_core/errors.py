"""BAML error taxonomy.

Every error is fatal for the current read, write or tree build. Offsets in the
format are relative, so nothing downstream of a bad record can be trusted.
"""
from __future__ import annotations


class BamlError(ValueError):
    """Base class; `code` is the stable identifier reported by baml-verify."""

    code = "E_BAML"


class InvalidSignatureError(BamlError):
    code = "E_SIGNATURE"


class UnsupportedRecordTypeError(BamlError):
    code = "E_RECORD_TYPE"

    def __init__(self, opcode: int, offset: int | None = None):
        self.opcode = opcode
        self.offset = offset
        where = f" at offset {offset}" if offset is not None else ""
        super().__init__(f"FATAL: Unsupported record type 0x{opcode:02x}{where}")


class FramingMismatchError(BamlError):
    code = "E_FRAMING"


class TruncatedRecordError(FramingMismatchError):
    """The stream ended in the middle of a record."""


class FieldValueError(FramingMismatchError):
    """A field value does not fit the width its record layout gives it."""


class UnresolvedReferenceError(BamlError):
    code = "E_REFERENCE"


class TreeStructureError(BamlError):
    code = "E_TREE"


class UnexpectedFooterError(TreeStructureError):
    pass


class UnexpectedBodyRecordError(TreeStructureError):
    pass


class UnterminatedStructureError(TreeStructureError):
    pass


class OmittedFooterWarning(UserWarning):
    """An element was closed implicitly because its footer was missing."""
