"""Reader/Writer tests - header checks, opcode rejection, round trips."""

import io
import struct

import pytest

from baml_core import (
    Document,
    InvalidSignatureError,
    Record,
    RecordType,
    UnresolvedReferenceError,
    UnsupportedRecordTypeError,
    dumps,
    loads,
    read_document,
    write_document,
)
from baml_core.protocol import HEADER_BYTES, HEADER_LEN

T = RecordType


class TestHeader:

    def test_header_layout(self):
        assert HEADER_LEN == 28
        assert HEADER_BYTES[:4] == b"\x0c\x00\x00\x00"
        assert HEADER_BYTES[4:16] == "MSBAML".encode("utf-16-le")
        assert HEADER_BYTES[16:] == b"\x00\x00\x60\x00" * 3

    def test_header_only_is_empty_document(self):
        doc = loads(HEADER_BYTES)
        assert doc.records == []
        assert doc.references == {}

    @pytest.mark.parametrize("offset", [16, 18, 20, 22, 24, 26])
    def test_version_mismatch_rejected_before_records(self, offset, sample_bytes):
        data = bytearray(sample_bytes)
        data[offset] ^= 0x01
        with pytest.raises(InvalidSignatureError):
            loads(bytes(data))

    def test_bad_magic(self, sample_bytes):
        data = bytearray(sample_bytes)
        data[4] = ord("X")
        with pytest.raises(InvalidSignatureError, match="signature"):
            loads(bytes(data))

    def test_bad_signature_length(self):
        data = struct.pack("<I", 0x7FFFFFFF) + HEADER_BYTES[4:]
        with pytest.raises(InvalidSignatureError, match="length"):
            loads(data)

    @pytest.mark.parametrize("size", [0, 3, 15, 27])
    def test_truncated_header(self, size):
        with pytest.raises(InvalidSignatureError, match="Truncated"):
            loads(HEADER_BYTES[:size])

    def test_version_checked_even_when_records_are_unsupported(self):
        data = bytearray(HEADER_BYTES + b"\x17")
        data[26] = 0x61
        with pytest.raises(InvalidSignatureError):
            loads(bytes(data))


class TestOpcodeRejection:

    def test_comment_record_rejected(self):
        with pytest.raises(UnsupportedRecordTypeError) as exc:
            loads(HEADER_BYTES + bytes([T.Comment]))
        assert exc.value.opcode == T.Comment
        assert exc.value.offset == HEADER_LEN

    def test_unsupported_record_mid_stream(self, sample_bytes):
        data = sample_bytes[:-1] + bytes([T.ProcessingInstruction]) + sample_bytes[-1:]
        with pytest.raises(UnsupportedRecordTypeError) as exc:
            loads(data)
        assert exc.value.offset == len(sample_bytes) - 1

    def test_writer_rejects_unsupported_record(self):
        doc = Document(records=[Record(T.DefTag)])
        with pytest.raises(UnsupportedRecordTypeError):
            dumps(doc)


class TestRoundTrip:

    def test_decode_sample(self, sample_document, sample_bytes):
        doc = loads(sample_bytes)
        assert doc.records == sample_document.records
        assert doc.references == {12: 18, 13: 18}
        assert doc.positions == sample_document.positions
        assert doc.positions[0] == HEADER_LEN
        assert doc.target(13) == doc.records[18]
        assert doc.target(0) is None
        assert doc.deferred_indices() == [12, 13]
        assert [r["type_full_name"] for r in doc.records_of_type(T.TypeInfo)] == [
            "System.Windows.Controls.UserControl"
        ]

    def test_rewrite_is_stable(self, sample_bytes):
        doc = loads(sample_bytes)
        again = dumps(doc)
        assert again == sample_bytes
        assert loads(again).same_content(doc)

    def test_rewrite_after_edit_moves_offsets(self, sample_bytes):
        doc = loads(sample_bytes)
        old_target = doc.positions[18]
        # Grow a record in front of the deferred targets
        doc.records[5] = Record.create(T.StringInfo, string_id=1, value="AccentBrush" * 20)

        data = dumps(doc)
        assert doc.positions[18] > old_target

        reread = loads(data)
        assert reread.same_content(doc)
        assert reread.positions == doc.positions
        assert reread.target(12) == reread.records[18]

    def test_patched_placeholders(self, sample_document):
        data = dumps(sample_document)
        pos = sample_document.positions

        # DeferableContentStart: bytes from the end of its size field to the target
        (content_size,) = struct.unpack_from("<I", data, pos[12] + 1)
        assert pos[12] + 1 + 4 + content_size == pos[18]

        # DefAttributeKeyString: offset from the first record after the key run
        key_payload = pos[13] + 1 + 1 + 2  # opcode, size prefix, value_id
        (key_offset,) = struct.unpack_from("<I", data, key_payload)
        assert key_offset == 0

    def test_key_offset_relative_to_anchor(self):
        doc = Document()
        doc.append(Record.create(T.DocumentStart))
        doc.append(Record.create(T.PropertyDictionaryStart, attribute_id=1))
        doc.append(Record.create(T.DefAttributeKeyString, value_id=1), target=4)
        doc.append(Record.create(T.DefAttributeKeyString, value_id=2), target=7)
        doc.append(Record.create(T.ElementStart, type_id=3))
        doc.append(Record.create(T.Text, value="first"))
        doc.append(Record.create(T.ElementEnd))
        doc.append(Record.create(T.ElementStart, type_id=3))
        doc.append(Record.create(T.ElementEnd))
        doc.append(Record.create(T.PropertyDictionaryEnd))
        doc.append(Record.create(T.DocumentEnd))

        data = dumps(doc)
        second_key = doc.positions[3] + 1 + 1 + 2
        (stored,) = struct.unpack_from("<I", data, second_key)
        assert stored == doc.positions[7] - doc.positions[4]

        reread = loads(data)
        assert reread.references == {2: 4, 3: 7}

    def test_write_to_file(self, tmp_path, sample_document):
        path = tmp_path / "out.baml"
        with open(path, "wb") as f:
            write_document(sample_document, f)
            end = f.tell()
        assert end == path.stat().st_size
        with open(path, "rb") as f:
            doc = read_document(f)
        assert doc.same_content(sample_document)

    def test_stream_cursor_left_at_end(self, sample_document):
        buf = io.BytesIO()
        write_document(sample_document, buf)
        assert buf.tell() == len(buf.getvalue())

    def test_unresolved_reference_on_write(self, sample_document):
        del sample_document.references[13]
        with pytest.raises(UnresolvedReferenceError, match="no resolved target"):
            dumps(sample_document)

    def test_reference_to_missing_record(self, sample_document):
        sample_document.references[12] = 999
        with pytest.raises(UnresolvedReferenceError):
            dumps(sample_document)

    def test_backward_reference_cannot_be_encoded(self, sample_document):
        sample_document.references[12] = 0
        with pytest.raises(UnresolvedReferenceError, match="cannot reach"):
            dumps(sample_document)

    def test_dangling_offset_on_read(self, sample_document):
        data = bytearray(dumps(sample_document))
        slot = sample_document.positions[12] + 1
        struct.pack_into("<I", data, slot, 3)
        with pytest.raises(UnresolvedReferenceError, match="no record starts"):
            loads(bytes(data))
