"""BAML Core - compiled XAML record-stream codec."""
from .document import Document
from .errors import (
    BamlError,
    FieldValueError,
    FramingMismatchError,
    InvalidSignatureError,
    OmittedFooterWarning,
    TreeStructureError,
    TruncatedRecordError,
    UnexpectedBodyRecordError,
    UnexpectedFooterError,
    UnresolvedReferenceError,
    UnsupportedRecordTypeError,
    UnterminatedStructureError,
)
from .protocol import RecordType
from .reader import loads, read_document
from .records import Record
from .tree import Element, build_tree
from .writer import dumps, write_document

__all__ = [
    "Document",
    "Element",
    "Record",
    "RecordType",
    "read_document",
    "write_document",
    "build_tree",
    "loads",
    "dumps",
    "BamlError",
    "InvalidSignatureError",
    "UnsupportedRecordTypeError",
    "FramingMismatchError",
    "TruncatedRecordError",
    "FieldValueError",
    "UnresolvedReferenceError",
    "TreeStructureError",
    "UnexpectedFooterError",
    "UnexpectedBodyRecordError",
    "UnterminatedStructureError",
    "OmittedFooterWarning",
]
