from pathlib import Path

import pytest

from footydb.ingest.tabular import (
    BOM,
    MissingDataFileError,
    detect_delimiter,
    format_csv,
    parse_csv,
    read_optional_table,
    read_sheet_rows,
    read_table,
    write_csv,
)


def test_parse_csv_pads_trims_and_drops_blank_rows():
    text = " name , club ,extra\r\n\r\n  Alice , Ajax \r\nBob\r\n , , \r\nCarol,PSV,x,surplus\r\n"

    rows = parse_csv(text)

    assert rows == [
        {"name": "Alice", "club": "Ajax", "extra": ""},
        {"name": "Bob", "club": "", "extra": ""},
        {"name": "Carol", "club": "PSV", "extra": "x"},
    ]


def test_parse_csv_quoted_fields_keep_delimiters_and_line_breaks():
    text = 'name,note\n"Smith, John","said ""hi""\nthen left"\n'

    rows = parse_csv(text)

    assert rows == [{"name": "Smith, John", "note": 'said "hi"\nthen left'}]


def test_parse_csv_unterminated_quote_runs_to_end_of_input():
    rows = parse_csv('name,note\nAlice,"never closed\nstill note')

    assert rows == [{"name": "Alice", "note": "never closed\nstill note"}]


def test_bom_is_ignored_and_reading_is_idempotent():
    text = "name,club\nAlice,Ajax\n"

    assert parse_csv(BOM + text) == parse_csv(text)
    assert list(parse_csv(BOM + text)[0]) == ["name", "club"]


def test_quoting_round_trip(tmp_path: Path):
    rows = [
        {"name": "Smith, John", "note": 'He said "yes"', "multi": "line one\nline two"},
        {"name": "Plain", "note": "", "multi": "  padded  ".strip()},
    ]
    target = tmp_path / "out.csv"

    write_csv(target, rows, ["name", "note", "multi"])

    raw = target.read_bytes()
    assert raw.startswith(BOM.encode("utf-8"))
    assert b"\r\n" in raw
    assert read_table(target) == rows


def test_format_csv_quotes_only_when_needed():
    text = format_csv([{"a": "plain", "b": "with,comma"}], ["a", "b"])

    assert text == 'a,b\r\nplain,"with,comma"\r\n'


def test_write_csv_leaves_no_temporary_files(tmp_path: Path):
    target = tmp_path / "nested" / "table.csv"

    write_csv(target, [{"a": "1"}], ["a"])
    write_csv(target, [{"a": "2"}], ["a"])

    assert [path.name for path in target.parent.iterdir()] == ["table.csv"]
    assert read_table(target) == [{"a": "2"}]


def test_detect_delimiter_prefers_comma_then_tab():
    assert detect_delimiter("a,b\n1,2") == ","
    assert detect_delimiter(BOM + "key\tname_en\nx\ty") == "\t"
    assert detect_delimiter("single\nvalue") == ","


def test_read_table_detects_tab_separated_files(tmp_path: Path):
    path = tmp_path / "legacy.csv"
    path.write_text("key\tname_en\nA|1990-01-01\tA\n", encoding="utf-8")

    assert read_table(path) == [{"key": "A|1990-01-01", "name_en": "A"}]


def test_read_table_falls_back_to_cp932(tmp_path: Path):
    path = tmp_path / "sjis.csv"
    path.write_bytes("name,club\n田中,鹿島\n".encode("cp932"))

    assert read_table(path) == [{"name": "田中", "club": "鹿島"}]


def test_missing_required_table_raises(tmp_path: Path):
    with pytest.raises(MissingDataFileError):
        read_table(tmp_path / "club_master.csv")

    with pytest.raises(FileNotFoundError):
        read_table(tmp_path / "club_master.csv")


def test_missing_optional_table_is_empty(tmp_path: Path):
    assert read_optional_table(tmp_path / "transfers.csv") == []


def test_read_sheet_rows_from_csv_keeps_positions(tmp_path: Path):
    path = tmp_path / "sheet.csv"
    path.write_text("### Japan,,\n1,Shuichi Gonda,\n", encoding="utf-8")

    assert read_sheet_rows(path) == [["### Japan", "", ""], ["1", "Shuichi Gonda", ""]]


def test_read_sheet_rows_from_workbook(tmp_path: Path):
    openpyxl = pytest.importorskip("openpyxl")
    from datetime import datetime

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "squad"
    sheet.append(["#", "選手", "生年月日"])
    sheet.append([1, "Keeper One", datetime(1995, 9, 15)])
    path = tmp_path / "squad.xlsx"
    workbook.save(path)

    rows = read_sheet_rows(path, "squad")

    assert rows[0] == ["#", "選手", "生年月日"]
    assert rows[1][0] == 1
    assert rows[1][2] == datetime(1995, 9, 15)
    with pytest.raises(KeyError):
        read_sheet_rows(path, "missing")


def test_oversized_cell_does_not_truncate_the_table():
    huge = "x" * 200_000
    text = f"a,b\n1,{huge}\n2,y\n3,\"{huge}\"\n4,z\n"

    rows = parse_csv(text)

    assert [row["a"] for row in rows] == ["1", "2", "3", "4"]
    assert len(rows[0]["b"]) == 200_000
    assert rows[2]["b"] == huge
