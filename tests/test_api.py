"""Tests for the public serialization API."""

import io

import pytest

from regserializer import api
from regserializer.api import (
    RecordResult,
    serialize_record,
    serialize_records,
    serialize_tsv,
    serialize_yaml,
    write_entries,
)
from regserializer.codes import ErrorCode
from regserializer.config import ErrorPolicy
from regserializer.errors import SerializationError, UnknownFieldError, UnknownRegisterError
from regserializer.kernel.canonical import RawRecord
from regserializer.kernel.entry import EntryFormat
from regserializer.kernel.hash_utils import hash_content

TIMESTAMP = "2021-01-01T00:00:00Z"

ADDRESS_ROW_1 = (
    '{"address":"1","aliases":["Mill","Old Mill"],"name":"The \\"Old\\" Mill",'
    '"organisations":["company:123","local-authority:ABC"],"point":[12,-3],"street":"High Street"}'
)
ADDRESS_ROW_2 = '{"address":"2","street":"Low Road"}'


def _lines(stream: io.StringIO) -> list:
    return stream.getvalue().splitlines()


class TestSerializeRecord:
    def test_ok_result(self, simple_fields):
        record = RawRecord.from_row(["b", "a"], ["x", "y"])
        result = serialize_record(record, simple_fields, TIMESTAMP)
        assert result.ok
        assert result.entry.content == '{"a":"y","b":"x"}'
        assert result.entry.entry_line == f"append-entry\t{TIMESTAMP}\t{hash_content(result.entry.content)}"

    def test_unknown_field_is_an_issue(self, simple_fields):
        record = RawRecord.from_row(["a", "zz"], ["1", "2"])
        result = serialize_record(record, simple_fields, TIMESTAMP, index=4)
        assert not result.ok
        assert result.entry is None
        assert result.issue.code is ErrorCode.UNKNOWN_FIELD
        assert result.issue.field == "zz"
        assert result.issue.index == 4

    def test_missing_key_is_an_issue(self, simple_fields):
        record = RawRecord.from_row(["a", "b"], ["1", "2"])
        result = serialize_record(
            record, simple_fields, TIMESTAMP, fmt=EntryFormat.KEYED, register_name="c"
        )
        assert result.issue.code is ErrorCode.MISSING_KEY

    def test_keyed_entry(self, simple_fields):
        record = RawRecord.from_row(["a", "b"], ["a1", "b1"])
        result = serialize_record(
            record, simple_fields, TIMESTAMP, fmt=EntryFormat.KEYED, register_name="a"
        )
        assert result.entry.entry_line.startswith(f"append-entry\tuser\ta1\t{TIMESTAMP}\tsha-256:")

    def test_bad_order_is_encoding_failure(self, simple_fields):
        record = RawRecord.from_row(["a", "b"], ["1", "2"])
        result = serialize_record(record, simple_fields, TIMESTAMP, order=(1,))
        assert result.issue.code is ErrorCode.ENCODING_FAILURE


class TestSerializeRecords:
    def test_results_in_input_order(self, simple_fields):
        records = [RawRecord.from_row(["a"], [str(i)]) for i in range(5)]
        results = list(serialize_records(records, simple_fields, timestamp=TIMESTAMP))
        assert [r.index for r in results] == [0, 1, 2, 3, 4]
        assert [r.entry.content for r in results] == [f'{{"a":"{i}"}}' for i in range(5)]

    def test_mixed_headers(self, simple_fields):
        records = [
            RawRecord.from_row(["b", "a"], ["1", "2"]),
            RawRecord.from_row(["c", "a"], ["3;4", "5"]),
            RawRecord.from_row(["b", "a"], ["6", "7"]),
        ]
        contents = [r.entry.content for r in serialize_records(records, simple_fields, timestamp=TIMESTAMP)]
        assert contents == ['{"a":"2","b":"1"}', '{"a":"5","c":["3","4"]}', '{"a":"7","b":"6"}']

    def test_single_timestamp_per_run(self, simple_fields):
        records = [RawRecord.from_row(["a"], [str(i)]) for i in range(3)]
        timestamps = {r.entry.timestamp for r in serialize_records(records, simple_fields)}
        assert len(timestamps) == 1

    def test_keyed_needs_register_name(self, simple_fields):
        with pytest.raises(ValueError):
            list(serialize_records([], simple_fields, fmt=EntryFormat.KEYED))


class TestWriteEntries:
    def _results(self, simple_fields):
        records = [
            RawRecord.from_row(["a"], ["1"]),
            RawRecord.from_row(["a", "x"], ["2", "bad"]),
            RawRecord.from_row(["a"], ["3"]),
        ]
        return serialize_records(records, simple_fields, timestamp=TIMESTAMP)

    def test_pairs_written_item_first(self, simple_fields):
        stream = io.StringIO()
        records = [RawRecord.from_row(["a"], ["1"]), RawRecord.from_row(["a"], ["2"])]
        summary = write_entries(serialize_records(records, simple_fields, timestamp=TIMESTAMP), stream)
        lines = _lines(stream)
        assert summary.written == 2
        assert lines[0] == 'add-item\t{"a":"1"}'
        assert lines[1].startswith("append-entry\t")
        assert lines[2] == 'add-item\t{"a":"2"}'
        assert lines[3].startswith("append-entry\t")

    def test_fail_fast(self, simple_fields):
        stream = io.StringIO()
        with pytest.raises(SerializationError) as excinfo:
            write_entries(self._results(simple_fields), stream, on_error=ErrorPolicy.FAIL)
        assert excinfo.value.index == 1
        assert excinfo.value.code == "UNKNOWN_FIELD"
        assert len(_lines(stream)) == 2

    def test_skip_and_continue(self, simple_fields, caplog):
        stream = io.StringIO()
        with caplog.at_level("WARNING", logger="regserializer.api"):
            summary = write_entries(self._results(simple_fields), stream, on_error=ErrorPolicy.SKIP)
        lines = _lines(stream)
        assert summary.written == 2
        assert summary.skipped == 1
        assert summary.issues[0].index == 1
        assert [line for line in lines if line.startswith("add-item")] == [
            'add-item\t{"a":"1"}',
            'add-item\t{"a":"3"}',
        ]
        assert "skipping record 1" in caplog.text

    def test_no_results(self):
        stream = io.StringIO()
        summary = write_entries([], stream)
        assert summary.written == 0
        assert stream.getvalue() == ""

    def test_result_dump(self, simple_fields):
        record = RawRecord.from_row(["a", "q"], ["1", "2"])
        dumped = serialize_record(record, simple_fields, TIMESTAMP).model_dump(mode="json")
        assert dumped["entry"] is None
        assert dumped["issue"]["code"] == "UNKNOWN_FIELD"
        assert RecordResult(**dumped).issue.field == "q"


class TestSerializeTsv:
    def test_serialize_file(self, data_dir):
        stream = io.StringIO()
        summary = serialize_tsv(
            data_dir / "field-records.json", data_dir / "addresses.tsv", stream, timestamp=TIMESTAMP
        )
        assert summary.written == 2
        assert _lines(stream) == [
            f"add-item\t{ADDRESS_ROW_1}",
            f"append-entry\t{TIMESTAMP}\t{hash_content(ADDRESS_ROW_1)}",
            f"add-item\t{ADDRESS_ROW_2}",
            f"append-entry\t{TIMESTAMP}\t{hash_content(ADDRESS_ROW_2)}",
        ]

    def test_reproducible(self, data_dir):
        first, second = io.StringIO(), io.StringIO()
        for stream in (first, second):
            serialize_tsv(data_dir / "field-records.json", data_dir / "addresses.tsv", stream, timestamp=TIMESTAMP)
        assert first.getvalue() == second.getvalue()

    def test_keyed(self, data_dir):
        stream = io.StringIO()
        serialize_tsv(
            data_dir / "field-records.json",
            data_dir / "addresses.tsv",
            stream,
            timestamp=TIMESTAMP,
            fmt=EntryFormat.KEYED,
            register_name="address",
        )
        entry_lines = [line for line in _lines(stream) if line.startswith("append-entry")]
        assert entry_lines[0].startswith(f"append-entry\tuser\t1\t{TIMESTAMP}\tsha-256:")
        assert entry_lines[1].startswith(f"append-entry\tuser\t2\t{TIMESTAMP}\tsha-256:")

    def test_unknown_header_fails_fast(self, data_dir):
        stream = io.StringIO()
        with pytest.raises(UnknownFieldError) as excinfo:
            serialize_tsv(data_dir / "field-records.json", data_dir / "unknown-field.tsv", stream, timestamp=TIMESTAMP)
        assert excinfo.value.field == "colour"
        assert stream.getvalue() == ""

    def test_unknown_header_without_rows_fails(self, data_dir, tmp_path):
        tsv_path = tmp_path / "header-only.tsv"
        tsv_path.write_text("address\tcolour\n", encoding="utf-8")
        with pytest.raises(UnknownFieldError) as excinfo:
            serialize_tsv(data_dir / "field-records.json", tsv_path, io.StringIO(), timestamp=TIMESTAMP)
        assert excinfo.value.field == "colour"

    def test_leading_quotes_hashed_verbatim(self, data_dir, tmp_path):
        tsv_path = tmp_path / "quoted.tsv"
        tsv_path.write_text('address\tstreet\n1\t""aa"cc"\n', encoding="utf-8")
        stream = io.StringIO()
        serialize_tsv(data_dir / "field-records.json", tsv_path, stream, timestamp=TIMESTAMP)
        item, entry = _lines(stream)
        content = '{"address":"1","street":"\\"aa\\"cc"}'
        assert item == f"add-item\t{content}"
        assert entry == f"append-entry\t{TIMESTAMP}\t{hash_content(content)}"

    def test_unknown_header_skip(self, data_dir):
        stream = io.StringIO()
        summary = serialize_tsv(
            data_dir / "field-records.json",
            data_dir / "unknown-field.tsv",
            stream,
            timestamp=TIMESTAMP,
            on_error=ErrorPolicy.SKIP,
        )
        # Row 1 has a colour value, row 2 leaves it blank.
        assert summary.written == 1
        assert summary.skipped == 1
        assert summary.issues[0].code is ErrorCode.UNKNOWN_FIELD
        assert _lines(stream)[0] == 'add-item\t{"address":"2","street":"Low Road"}'


class TestSerializeYaml:
    def test_register_directory(self, data_dir):
        stream = io.StringIO()
        summary = serialize_yaml(data_dir / "register", stream, timestamp=TIMESTAMP)
        lines = _lines(stream)
        assert summary.written == 2
        assert lines[0] == (
            'add-item\t{"fields":["address"],"phase":"alpha","register":"address",'
            '"registry":"office-for","text":"Post & address no > no < than that"}'
        )
        assert lines[2].startswith('add-item\t{"fields":["country","name",')

    def test_keyed_uses_register_name_field(self, data_dir):
        stream = io.StringIO()
        serialize_yaml(data_dir / "register", stream, timestamp=TIMESTAMP, fmt=EntryFormat.KEYED)
        lines = _lines(stream)
        assert lines[1].startswith(f"append-entry\tuser\taddress\t{TIMESTAMP}\tsha-256:")
        assert lines[3].startswith(f"append-entry\tuser\tcountry\t{TIMESTAMP}\tsha-256:")

    def test_invalid_document_fails_fast(self, data_dir):
        stream = io.StringIO()
        with pytest.raises(SerializationError) as excinfo:
            serialize_yaml(data_dir / "field", stream, timestamp=TIMESTAMP)
        assert excinfo.value.code == "INVALID_DOCUMENT"
        assert "broken.yaml" in str(excinfo.value)

    def test_invalid_document_skipped(self, data_dir):
        stream = io.StringIO()
        summary = serialize_yaml(data_dir / "field", stream, timestamp=TIMESTAMP, on_error=ErrorPolicy.SKIP)
        assert summary.written == 1
        assert summary.skipped == 1
        assert _lines(stream)[0] == (
            'add-item\t{"cardinality":"1","datatype":"string","field":"street",'
            '"phase":"beta","text":"The name of a street"}'
        )

    def test_undecodable_document_skipped(self, tmp_path):
        register_dir = tmp_path / "datatype"
        register_dir.mkdir()
        (register_dir / "a.yaml").write_bytes(b"\xff\xfe")
        (register_dir / "b.yaml").write_text("datatype: string\ntext: 1.10\n", encoding="utf-8")
        stream = io.StringIO()
        summary = serialize_yaml(register_dir, stream, timestamp=TIMESTAMP, on_error=ErrorPolicy.SKIP)
        assert summary.written == 1
        assert summary.skipped == 1
        assert summary.issues[0].code is ErrorCode.INVALID_DOCUMENT
        assert summary.issues[0].message.startswith("a.yaml: not valid UTF-8")
        assert _lines(stream)[0] == 'add-item\t{"datatype":"string","text":"1.10"}'

    def test_unreadable_document_skipped(self, tmp_path, monkeypatch):
        register_dir = tmp_path / "datatype"
        register_dir.mkdir()
        good = register_dir / "b.yaml"
        good.write_text("datatype: string\n", encoding="utf-8")
        gone = register_dir / "a.yaml"
        monkeypatch.setattr(api, "iter_yaml_directory", lambda directory: iter([gone, good]))
        summary = serialize_yaml(register_dir, io.StringIO(), timestamp=TIMESTAMP, on_error=ErrorPolicy.SKIP)
        assert summary.written == 1
        assert summary.skipped == 1
        assert summary.issues[0].message.startswith("a.yaml: cannot read")

    def test_unknown_register_directory(self, data_dir):
        with pytest.raises(UnknownRegisterError):
            serialize_yaml(data_dir / "unknown", io.StringIO(), timestamp=TIMESTAMP)
