import pytest

from pdf_stamper import RowParseError
from pdf_stamper.rows import parse_rows


def test_parses_rows_in_order_with_string_values():
    rows = parse_rows(b"name,age,zip\nAlice,30,01234\nBob,41,99999\n")
    assert rows == [
        {"name": "Alice", "age": "30", "zip": "01234"},
        {"name": "Bob", "age": "41", "zip": "99999"},
    ]
    assert list(rows[0].keys()) == ["name", "age", "zip"]


def test_empty_cells_become_empty_strings():
    rows = parse_rows("name,email\nBob,\n")
    assert rows == [{"name": "Bob", "email": ""}]


def test_na_like_values_are_kept_verbatim():
    rows = parse_rows("name,note\nNA,null\n")
    assert rows == [{"name": "NA", "note": "null"}]


def test_semicolon_delimiter_is_sniffed():
    rows = parse_rows("name;city\nAlice;Berlin\n")
    assert rows == [{"name": "Alice", "city": "Berlin"}]


def test_explicit_delimiter():
    rows = parse_rows("name|city\nAlice|Berlin\n", delimiter="|")
    assert rows == [{"name": "Alice", "city": "Berlin"}]


def test_single_column_file():
    rows = parse_rows("name\nAlice\nBob\n")
    assert [r["name"] for r in rows] == ["Alice", "Bob"]


def test_blank_lines_and_bom_are_ignored():
    rows = parse_rows("\ufeffname,city\n\nAlice,Berlin\n\n".encode("utf-8"))
    assert rows == [{"name": "Alice", "city": "Berlin"}]


def test_header_only_gives_no_rows():
    assert parse_rows("name,city\n") == []


def test_empty_file_is_rejected():
    with pytest.raises(RowParseError):
        parse_rows(b"   \n")
