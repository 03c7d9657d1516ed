"""Unit tests for content_etl.exporter."""

from __future__ import annotations

from content_etl.exporter import (
    export_filename,
    format_cell,
    records_from_table,
    save_csv,
    to_csv,
)
from content_etl.tokenizer import parse_csv_text


# ---------------------------------------------------------------------------
# format_cell
# ---------------------------------------------------------------------------

class TestFormatCell:
    def test_plain_string(self):
        assert format_cell("hello") == "hello"

    def test_comma_quoted(self):
        assert format_cell("a, b") == '"a, b"'

    def test_quote_doubled(self):
        assert format_cell('say "hi"') == '"say ""hi"""'

    def test_newline_quoted(self):
        assert format_cell("line1\nline2") == '"line1\nline2"'

    def test_none_is_empty(self):
        assert format_cell(None) == ""

    def test_list_joined_and_quoted(self):
        assert format_cell(["a", "b"]) == '"a; b"'

    def test_empty_list(self):
        assert format_cell([]) == '""'

    def test_dict_as_json(self):
        assert format_cell({"k": 1}) == '"{""k"":1}"'

    def test_bool_and_zero(self):
        assert format_cell(True) == "true"
        assert format_cell(False) == "false"
        assert format_cell(0) == "0"


# ---------------------------------------------------------------------------
# to_csv
# ---------------------------------------------------------------------------

class TestToCsv:
    def test_header_from_first_record(self):
        text = to_csv([{"name": "Alice", "age": 30}, {"name": "Bob", "age": 25}])
        assert text == "name,age\nAlice,30\nBob,25"

    def test_explicit_columns(self):
        text = to_csv([{"a": 1, "b": 2, "c": 3}], columns=["c", "a"])
        assert text == "c,a\n3,1"

    def test_missing_key_is_empty_cell(self):
        text = to_csv([{"a": 1, "b": 2}, {"a": 3}])
        assert text.splitlines()[-1] == "3,"

    def test_zero_records_returns_none(self):
        assert to_csv([]) is None

    def test_order_preserved(self):
        records = [{"n": str(i)} for i in (3, 1, 2)]
        assert to_csv(records).splitlines()[1:] == ["3", "1", "2"]

    def test_scalar_cells_tokenize_back(self):
        records = [
            {"title": "Plain", "body": 'He said "hi", then left'},
            {"title": "Two, parts", "body": "x"},
        ]
        table = parse_csv_text(to_csv(records))
        assert table.headers == ["title", "body"]
        assert records_from_table(table) == records


class TestSaveCsv:
    def test_writes_file_with_trailing_newline(self, tmp_path):
        path = tmp_path / "out" / "documents.csv"
        written = save_csv(to_csv([{"a": 1}]), path)
        assert written == path
        assert path.read_text(encoding="utf-8") == "a\n1\n"


class TestExportFilename:
    def test_adds_extension(self):
        assert export_filename("documents") == "documents.csv"

    def test_keeps_extension(self):
        assert export_filename("Logs.CSV") == "Logs.CSV"
