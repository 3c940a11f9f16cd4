"""BAML protocol constants.

Single source of truth for the header signature, version triple and opcodes.
Keep this file stable. Reader and Writer must remain synchronized.
"""
from __future__ import annotations

import struct
from enum import IntEnum

# Header: [SigLen(4) | "MSBAML" UTF-16LE(12) | pad to 4 | 3 x (major(2), minor(2))]
SIGNATURE = "MSBAML"
SIGNATURE_ENCODING = "utf-16-le"
SIGNATURE_LEN_FMT = "<I"
VERSION_FMT = "<HH"
VERSION = (0, 0x60)  # reader, updater and writer versions must all match

_SIG_BYTES = SIGNATURE.encode(SIGNATURE_ENCODING)
HEADER_BYTES = (
    struct.pack(SIGNATURE_LEN_FMT, len(_SIG_BYTES))
    + _SIG_BYTES
    + b"\x00" * (-len(_SIG_BYTES) % 4)
    + struct.pack(VERSION_FMT, *VERSION) * 3
)
HEADER_LEN = len(HEADER_BYTES)  # 28

# Deferred placeholders are always uint32
PLACEHOLDER_FMT = "<I"
PLACEHOLDER_LEN = 4

# Encoded ints are 7 bits per byte, int32 range
MAX_ENCODED_INT_BYTES = 5
MAX_ENCODED_INT = 0xFFFFFFFF

# Default safety bounds
DEFAULT_MAX_RECORD_SIZE = 16 * 1024 * 1024  # 16 MiB per sized record


class RecordType(IntEnum):
    DocumentStart = 0x01
    DocumentEnd = 0x02
    ElementStart = 0x03
    ElementEnd = 0x04
    Property = 0x05
    PropertyCustom = 0x06
    PropertyComplexStart = 0x07
    PropertyComplexEnd = 0x08
    PropertyArrayStart = 0x09
    PropertyArrayEnd = 0x0A
    PropertyListStart = 0x0B
    PropertyListEnd = 0x0C
    PropertyDictionaryStart = 0x0D
    PropertyDictionaryEnd = 0x0E
    LiteralContent = 0x0F
    Text = 0x10
    TextWithConverter = 0x11
    RoutedEvent = 0x12
    ClrEvent = 0x13
    XmlnsProperty = 0x14
    XmlAttribute = 0x15
    ProcessingInstruction = 0x16
    Comment = 0x17
    DefTag = 0x18
    DefAttribute = 0x19
    EndAttributes = 0x1A
    PIMapping = 0x1B
    AssemblyInfo = 0x1C
    TypeInfo = 0x1D
    TypeSerializerInfo = 0x1E
    AttributeInfo = 0x1F
    StringInfo = 0x20
    PropertyStringReference = 0x21
    PropertyTypeReference = 0x22
    PropertyWithExtension = 0x23
    PropertyWithConverter = 0x24
    DeferableContentStart = 0x25
    DefAttributeKeyString = 0x26
    DefAttributeKeyType = 0x27
    KeyElementStart = 0x28
    KeyElementEnd = 0x29
    ConstructorParametersStart = 0x2A
    ConstructorParametersEnd = 0x2B
    ConstructorParameterType = 0x2C
    ConnectionId = 0x2D
    ContentProperty = 0x2E
    NamedElementStart = 0x2F
    StaticResourceStart = 0x30
    StaticResourceEnd = 0x31
    StaticResourceId = 0x32
    TextWithId = 0x33
    PresentationOptionsAttribute = 0x34
    LineNumberAndPosition = 0x35
    LinePosition = 0x36
    OptimizedStaticResource = 0x37
    PropertyWithStaticResourceId = 0x38
    LastRecordType = 0x39


# Legacy opcodes that a conforming stream must never contain
UNSUPPORTED_RECORD_TYPES = frozenset({
    RecordType.ClrEvent,
    RecordType.XmlAttribute,
    RecordType.ProcessingInstruction,
    RecordType.Comment,
    RecordType.DefTag,
    RecordType.EndAttributes,
    RecordType.LastRecordType,
})
