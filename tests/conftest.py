"""Shared fixtures: a small but complete BAML document built in memory.

Record layout of SAMPLE (indices are referenced by the tests):

     0 DocumentStart
     1-7 assembly/type/attribute/string/xmlns/mapping tables
     8 ElementStart (UserControl)
     9 ConnectionId
    10 LineNumberAndPosition
    11 PropertyDictionaryStart (Resources)
    12 DeferableContentStart          -> 18
    13 DefAttributeKeyString          -> 18
    14   StaticResourceStart
    15     StaticResourceStart
    16     StaticResourceEnd
    17   StaticResourceEnd
    18 ElementStart (Brush)            first dictionary value
    19 Property
    20 ElementEnd
    21 PropertyDictionaryEnd
    22 Text
    23 LinePosition
    24 ElementEnd
    25 DocumentEnd
"""
from __future__ import annotations

import pytest

from baml_core import Document, Record, RecordType, dumps

R = Record.create
T = RecordType


def sample_records() -> list[Record]:
    return [
        R(T.DocumentStart, max_async_records=200),
        R(T.AssemblyInfo, assembly_id=1,
          assembly_full_name="PresentationFramework, Version=4.0.0.0, Culture=neutral, PublicKeyToken=31bf3856ad364e35"),
        R(T.TypeInfo, type_id=1, assembly_id=1, type_full_name="System.Windows.Controls.UserControl"),
        R(T.TypeSerializerInfo, type_id=2, assembly_id=1, type_full_name="System.Windows.Media.Brush",
          serializer_type_id=7),
        R(T.AttributeInfo, attribute_id=1, owner_type_id=1, attribute_usage=0, name="Resources"),
        R(T.StringInfo, string_id=1, value="AccentBrush"),
        R(T.XmlnsProperty, prefix="x", xml_namespace="http://schemas.microsoft.com/winfx/2006/xaml",
          assembly_ids=(1, 2)),
        R(T.PIMapping, xml_namespace="clr-namespace:Demo", clr_namespace="Demo", assembly_id=2),
        R(T.ElementStart, type_id=1),
        R(T.ConnectionId, connection_id=3),
        R(T.LineNumberAndPosition, line_number=12, line_position=4),
        R(T.PropertyDictionaryStart, attribute_id=1),
        R(T.DeferableContentStart),
        R(T.DefAttributeKeyString, value_id=1, shared=True, shared_set=True),
        R(T.StaticResourceStart, type_id=2),
        R(T.StaticResourceStart, type_id=2),
        R(T.StaticResourceEnd),
        R(T.StaticResourceEnd),
        R(T.ElementStart, type_id=2),
        R(T.Property, attribute_id=2, value="#FF0078D7"),
        R(T.ElementEnd),
        R(T.PropertyDictionaryEnd),
        R(T.Text, value="Hello"),
        R(T.LinePosition, line_position=9),
        R(T.ElementEnd),
        R(T.DocumentEnd),
    ]


SAMPLE_REFERENCES = {12: 18, 13: 18}


@pytest.fixture
def sample_document() -> Document:
    return Document(records=sample_records(), references=dict(SAMPLE_REFERENCES))


@pytest.fixture
def sample_bytes(sample_document) -> bytes:
    return dumps(sample_document)


@pytest.fixture
def sample_file(tmp_path, sample_bytes):
    path = tmp_path / "UserControl.baml"
    path.write_bytes(sample_bytes)
    return path
