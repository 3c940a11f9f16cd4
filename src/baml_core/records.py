"""BAML record catalog.

Each opcode maps to a RecordShape: an ordered list of payload fields and
whether the payload is framed by a 7-bit encoded total length ("sized").
Variants that extend another variant reuse its field tuple by value, e.g.
NamedElementStart is ELEMENT_START plus one string.

Deferred placeholders (KEY_OFFSET, CONTENT_SIZE) are part of the wire layout
but not of record content. Their stored values travel separately as slots and
are resolved by baml_core.resolver.
"""
from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any

from baml_core.binary import BamlReader, BamlWriter
from baml_core.errors import (
    FieldValueError,
    FramingMismatchError,
    TruncatedRecordError,
    UnsupportedRecordTypeError,
)
from baml_core.protocol import DEFAULT_MAX_RECORD_SIZE, RecordType
from baml_core.varint import encode_varint, sized_total


class FieldKind(Enum):
    U8 = "u8"
    BOOL = "bool"
    U16 = "u16"
    U32 = "u32"
    STRING = "string"
    U16_ARRAY = "u16[]"
    BLOB = "blob"
    KEY_OFFSET = "key_offset"
    CONTENT_SIZE = "content_size"


class ReferenceKind(Enum):
    KEY = "key"
    CONTENT = "content"


_PLACEHOLDERS = {
    FieldKind.KEY_OFFSET: ReferenceKind.KEY,
    FieldKind.CONTENT_SIZE: ReferenceKind.CONTENT,
}

_DEFAULTS = {
    FieldKind.U8: 0,
    FieldKind.BOOL: False,
    FieldKind.U16: 0,
    FieldKind.U32: 0,
    FieldKind.STRING: "",
    FieldKind.U16_ARRAY: (),
    FieldKind.BLOB: b"",
}

Field = tuple[str | None, FieldKind]


@dataclass(frozen=True)
class RecordShape:
    type: RecordType
    fields: tuple[Field, ...] = ()
    sized: bool = False

    @property
    def reference(self) -> ReferenceKind | None:
        for _, kind in self.fields:
            if kind in _PLACEHOLDERS:
                return _PLACEHOLDERS[kind]
        return None

    @property
    def content_fields(self) -> tuple[tuple[str, FieldKind], ...]:
        return tuple((name, kind) for name, kind in self.fields if kind not in _PLACEHOLDERS)


# Shared payload prefixes
ELEMENT_START: tuple[Field, ...] = (("type_id", FieldKind.U16), ("flags", FieldKind.U8))
NAMED_ELEMENT_START = ELEMENT_START + (("runtime_name", FieldKind.STRING),)
KEY_TAIL: tuple[Field, ...] = (
    (None, FieldKind.KEY_OFFSET),
    ("shared", FieldKind.BOOL),
    ("shared_set", FieldKind.BOOL),
)
DEF_ATTRIBUTE_KEY_TYPE = ELEMENT_START + KEY_TAIL
DEF_ATTRIBUTE_KEY_STRING = (("value_id", FieldKind.U16),) + KEY_TAIL
PROPERTY_COMPLEX_START: tuple[Field, ...] = (("attribute_id", FieldKind.U16),)
PROPERTY = PROPERTY_COMPLEX_START + (("value", FieldKind.STRING),)
STATIC_RESOURCE_ID: tuple[Field, ...] = (("static_resource_id", FieldKind.U16),)
TYPE_INFO: tuple[Field, ...] = (
    ("type_id", FieldKind.U16),
    ("assembly_id", FieldKind.U16),
    ("type_full_name", FieldKind.STRING),
)
TEXT: tuple[Field, ...] = (("value", FieldKind.STRING),)
NAMED_VALUE: tuple[Field, ...] = (("value", FieldKind.STRING), ("name_id", FieldKind.U16))
CONVERTER: tuple[Field, ...] = (("converter_type_id", FieldKind.U16),)


def _shape(record_type: RecordType, fields: tuple[Field, ...] = (), sized: bool = False) -> RecordShape:
    return RecordShape(record_type, fields, sized)


_SHAPES = [
    _shape(RecordType.DocumentStart, (
        ("load_async", FieldKind.BOOL),
        ("max_async_records", FieldKind.U32),
        ("debug_baml", FieldKind.BOOL),
    )),
    _shape(RecordType.DocumentEnd),
    _shape(RecordType.ElementStart, ELEMENT_START),
    _shape(RecordType.ElementEnd),
    _shape(RecordType.NamedElementStart, NAMED_ELEMENT_START),
    _shape(RecordType.KeyElementStart, DEF_ATTRIBUTE_KEY_TYPE),
    _shape(RecordType.KeyElementEnd),
    _shape(RecordType.Property, PROPERTY, sized=True),
    _shape(RecordType.PropertyWithConverter, PROPERTY + CONVERTER, sized=True),
    _shape(RecordType.PropertyCustom, (
        ("attribute_id", FieldKind.U16),
        ("serializer_type_id", FieldKind.U16),
        ("data", FieldKind.BLOB),
    ), sized=True),
    _shape(RecordType.PropertyComplexStart, PROPERTY_COMPLEX_START),
    _shape(RecordType.PropertyComplexEnd),
    _shape(RecordType.PropertyArrayStart, PROPERTY_COMPLEX_START),
    _shape(RecordType.PropertyArrayEnd),
    _shape(RecordType.PropertyListStart, PROPERTY_COMPLEX_START),
    _shape(RecordType.PropertyListEnd),
    _shape(RecordType.PropertyDictionaryStart, PROPERTY_COMPLEX_START),
    _shape(RecordType.PropertyDictionaryEnd),
    _shape(RecordType.PropertyTypeReference, PROPERTY_COMPLEX_START + (("type_id", FieldKind.U16),)),
    _shape(RecordType.PropertyStringReference, PROPERTY_COMPLEX_START + (("string_id", FieldKind.U16),)),
    _shape(RecordType.PropertyWithExtension, (
        ("attribute_id", FieldKind.U16),
        ("flags", FieldKind.U16),
        ("value_id", FieldKind.U16),
    )),
    _shape(RecordType.PropertyWithStaticResourceId, PROPERTY_COMPLEX_START + STATIC_RESOURCE_ID),
    _shape(RecordType.DefAttribute, NAMED_VALUE, sized=True),
    _shape(RecordType.DefAttributeKeyString, DEF_ATTRIBUTE_KEY_STRING, sized=True),
    _shape(RecordType.DefAttributeKeyType, DEF_ATTRIBUTE_KEY_TYPE),
    _shape(RecordType.DeferableContentStart, ((None, FieldKind.CONTENT_SIZE),)),
    _shape(RecordType.StaticResourceStart, ELEMENT_START),
    _shape(RecordType.StaticResourceEnd),
    _shape(RecordType.StaticResourceId, STATIC_RESOURCE_ID),
    _shape(RecordType.OptimizedStaticResource, (("flags", FieldKind.U8), ("value_id", FieldKind.U16))),
    _shape(RecordType.TypeInfo, TYPE_INFO, sized=True),
    _shape(RecordType.TypeSerializerInfo, TYPE_INFO + (("serializer_type_id", FieldKind.U16),), sized=True),
    _shape(RecordType.AttributeInfo, (
        ("attribute_id", FieldKind.U16),
        ("owner_type_id", FieldKind.U16),
        ("attribute_usage", FieldKind.U8),
        ("name", FieldKind.STRING),
    ), sized=True),
    _shape(RecordType.AssemblyInfo, (
        ("assembly_id", FieldKind.U16),
        ("assembly_full_name", FieldKind.STRING),
    ), sized=True),
    _shape(RecordType.StringInfo, (("string_id", FieldKind.U16), ("value", FieldKind.STRING)), sized=True),
    _shape(RecordType.Text, TEXT, sized=True),
    _shape(RecordType.TextWithConverter, TEXT + CONVERTER, sized=True),
    _shape(RecordType.TextWithId, (("value_id", FieldKind.U16),), sized=True),
    _shape(RecordType.LiteralContent, TEXT + (
        ("reserved0", FieldKind.U32),
        ("reserved1", FieldKind.U32),
    ), sized=True),
    _shape(RecordType.XmlnsProperty, (
        ("prefix", FieldKind.STRING),
        ("xml_namespace", FieldKind.STRING),
        ("assembly_ids", FieldKind.U16_ARRAY),
    ), sized=True),
    _shape(RecordType.PresentationOptionsAttribute, NAMED_VALUE, sized=True),
    _shape(RecordType.PIMapping, (
        ("xml_namespace", FieldKind.STRING),
        ("clr_namespace", FieldKind.STRING),
        ("assembly_id", FieldKind.U16),
    ), sized=True),
    _shape(RecordType.RoutedEvent, PROPERTY, sized=True),
    _shape(RecordType.ConnectionId, (("connection_id", FieldKind.U32),)),
    _shape(RecordType.ContentProperty, PROPERTY_COMPLEX_START),
    _shape(RecordType.ConstructorParametersStart),
    _shape(RecordType.ConstructorParametersEnd),
    _shape(RecordType.ConstructorParameterType, (("type_id", FieldKind.U16),)),
    _shape(RecordType.LineNumberAndPosition, (
        ("line_number", FieldKind.U32),
        ("line_position", FieldKind.U32),
    )),
    _shape(RecordType.LinePosition, (("line_position", FieldKind.U32),)),
]

CATALOG: dict[RecordType, RecordShape] = {shape.type: shape for shape in _SHAPES}


def shape_for(opcode: int, offset: int | None = None) -> RecordShape:
    shape = CATALOG.get(opcode)
    if shape is None:
        raise UnsupportedRecordTypeError(opcode, offset)
    return shape


_INT_LIMITS = {
    FieldKind.U8: 0xFF,
    FieldKind.U16: 0xFFFF,
    FieldKind.U32: 0xFFFFFFFF,
}


def _check_range(name: str, kind: FieldKind, value: int) -> int:
    limit = _INT_LIMITS[kind]
    if not 0 <= value <= limit:
        raise FieldValueError(f"FATAL: Field {name}={value} is outside {kind.value} range 0..{limit}")
    return value


def _normalize(name: str, kind: FieldKind, value: Any) -> Any:
    if kind is FieldKind.U16_ARRAY:
        items = tuple(_check_range(name, FieldKind.U16, int(v)) for v in value)
        _check_range(f"len({name})", FieldKind.U16, len(items))
        return items
    if kind is FieldKind.BLOB:
        return bytes(value)
    if kind is FieldKind.BOOL:
        return bool(value)
    if kind is FieldKind.STRING:
        return str(value)
    return _check_range(name, kind, int(value))


@dataclass(frozen=True, repr=False)
class Record:
    """One decoded record: its opcode plus payload values in wire order.

    Records are values. Their stream offsets live in Document.positions and
    their deferred targets in Document.references.
    """

    type: RecordType
    fields: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def create(cls, record_type: int, **values: Any) -> Record:
        shape = shape_for(record_type)
        names = [name for name, _ in shape.content_fields]
        unknown = sorted(set(values) - set(names))
        if unknown:
            raise ValueError(f"{shape.type.name} has no field(s) {', '.join(unknown)}")
        fields = tuple(
            (name, _normalize(name, kind, values.get(name, _DEFAULTS[kind])))
            for name, kind in shape.content_fields
        )
        return cls(shape.type, fields)

    @property
    def name(self) -> str:
        return self.type.name

    @property
    def shape(self) -> RecordShape:
        return shape_for(self.type)

    def __getitem__(self, name: str) -> Any:
        for key, value in self.fields:
            if key == name:
                return value
        raise KeyError(f"{self.type.name} has no field {name!r}")

    def get(self, name: str, default: Any = None) -> Any:
        try:
            return self[name]
        except KeyError:
            return default

    def as_dict(self) -> dict[str, Any]:
        return dict(self.fields)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self.fields)
        return f"{self.type.name}({inner})"


def _read_u16_array(reader: BamlReader) -> tuple[int, ...]:
    count = reader.read_u16()
    return tuple(reader.read_u16() for _ in range(count))


_READERS = {
    FieldKind.U8: BamlReader.read_u8,
    FieldKind.BOOL: BamlReader.read_bool,
    FieldKind.U16: BamlReader.read_u16,
    FieldKind.U32: BamlReader.read_u32,
    FieldKind.STRING: BamlReader.read_string,
    FieldKind.U16_ARRAY: _read_u16_array,
    FieldKind.BLOB: BamlReader.read_rest,
}


def _write_u16_array(writer: BamlWriter, values: tuple[int, ...]) -> None:
    writer.write_u16(len(values))
    for v in values:
        writer.write_u16(v)


_WRITERS = {
    FieldKind.U8: BamlWriter.write_u8,
    FieldKind.BOOL: BamlWriter.write_bool,
    FieldKind.U16: BamlWriter.write_u16,
    FieldKind.U32: BamlWriter.write_u32,
    FieldKind.STRING: BamlWriter.write_string,
    FieldKind.U16_ARRAY: _write_u16_array,
    FieldKind.BLOB: BamlWriter.write_bytes,
}


def _read_fields(shape: RecordShape, reader: BamlReader) -> tuple[Record, tuple[int, int] | None]:
    values = []
    slot = None
    for name, kind in shape.fields:
        if kind in _PLACEHOLDERS:
            position = reader.tell()
            slot = (position, reader.read_u32())
        else:
            values.append((name, _READERS[kind](reader)))
    return Record(shape.type, tuple(values)), slot


def decode_payload(
    shape: RecordShape,
    reader: BamlReader,
    max_record_size: int = DEFAULT_MAX_RECORD_SIZE,
) -> tuple[Record, tuple[int, int] | None]:
    """Read the payload following an opcode byte.

    Returns the record and, for deferred variants, the slot as
    (absolute placeholder offset, stored value).
    """
    if not shape.sized:
        return _read_fields(shape, reader)

    start = reader.tell()
    size = reader.read_encoded_int()
    prefix_len = reader.tell() - start

    if size > max_record_size:
        raise FramingMismatchError(
            f"FATAL: {shape.type.name} at offset {start} declares {size} bytes, limit is {max_record_size}"
        )
    if size < prefix_len:
        raise FramingMismatchError(
            f"FATAL: {shape.type.name} at offset {start} declares {size} bytes, shorter than its own length prefix"
        )

    payload_start = reader.tell()
    payload = reader.read_bytes(size - prefix_len)
    sub = BamlReader(io.BytesIO(payload), base=payload_start)
    try:
        record, slot = _read_fields(shape, sub)
    except TruncatedRecordError as e:
        raise FramingMismatchError(
            f"FATAL: {shape.type.name} at offset {start} declares {size} bytes, payload needs more: {e}"
        ) from e

    consumed = sub.tell() - start
    if consumed != size:
        raise FramingMismatchError(
            f"FATAL: {shape.type.name} at offset {start} declares {size} bytes, consumed {consumed}"
        )
    return record, slot


def encode_payload(record: Record) -> tuple[bytes, int | None]:
    """Serialize payload fields. Placeholders are written as zero; the second
    element is the placeholder's offset within the payload."""
    shape = record.shape
    values = record.as_dict()
    buf = io.BytesIO()
    writer = BamlWriter(buf)
    slot = None
    for name, kind in shape.fields:
        if kind in _PLACEHOLDERS:
            slot = writer.tell()
            writer.write_u32(0)
        else:
            value = values[name] if name in values else _DEFAULTS[kind]
            try:
                _WRITERS[kind](writer, value)
            except (struct.error, UnicodeEncodeError) as e:
                raise FieldValueError(f"FATAL: {shape.type.name} field {name}={value!r} cannot be encoded: {e}") from e
    return buf.getvalue(), slot


def encode_record(record: Record) -> tuple[bytes, int | None]:
    """Opcode, optional length prefix and payload. The slot offset is
    relative to the opcode byte."""
    payload, slot = encode_payload(record)
    prefix = encode_varint(sized_total(len(payload))) if record.shape.sized else b""
    head = bytes((int(record.type),)) + prefix
    if slot is not None:
        slot += len(head)
    return head + payload, slot
