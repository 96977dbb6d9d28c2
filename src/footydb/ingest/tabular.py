"""Delimited-text reading and writing for the curated spreadsheet exports."""

from __future__ import annotations

import csv
import io
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

BOM = "\ufeff"

Row = dict[str, str]


def _raise_field_size_limit() -> int:
    limit = sys.maxsize
    while True:
        try:
            csv.field_size_limit(limit)
            return limit
        except OverflowError:
            limit //= 10


# Pasted cells (notes, HTML fragments) can exceed the csv module's 128 KiB default.
_raise_field_size_limit()


class MissingDataFileError(FileNotFoundError):
    """Raised when a required data file (e.g. a master table) is absent."""


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith(BOM) else text


# Excel on Japanese Windows saves CSV as cp932 unless told otherwise.
_ENCODINGS = ("utf-8", "cp932", "cp1252")


def read_text(path: Path) -> str:
    """Read ``path`` trying the encodings spreadsheet tools commonly emit."""

    raw = path.read_bytes()
    for encoding in _ENCODINGS:
        try:
            text = raw.decode(encoding)
        except UnicodeDecodeError:
            continue
        if encoding != "utf-8":
            logger.info("Decoded %s as %s", path, encoding)
        return text
    logger.warning("Could not decode %s cleanly; replacing invalid bytes", path)
    return raw.decode("utf-8", errors="replace")


def detect_delimiter(text: str) -> str:
    """Guess the delimiter from the header line (comma wins, then tab)."""

    first_line = strip_bom(text).split("\n", 1)[0]
    if "," in first_line:
        return ","
    if "\t" in first_line:
        return "\t"
    return ","


def _raw_records(text: str, delimiter: str) -> List[List[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=False)
    records: List[List[str]] = []
    try:
        for record in reader:
            records.append([cell[:-1] if cell.endswith("\r") else cell for cell in record])
    except csv.Error as exc:
        logger.warning("Stopped parsing at line %d: %s", reader.line_num, exc)
    return records


def parse_csv(text: str, *, delimiter: str = ",") -> List[Row]:
    """Parse delimited text into header-keyed rows.

    Blank rows are dropped, the first remaining row is the header, every value is
    trimmed, short rows are padded with ``""`` and surplus fields are ignored.
    """

    records = [
        record
        for record in _raw_records(strip_bom(text), delimiter)
        if any(cell.strip() for cell in record)
    ]
    if not records:
        return []

    header = [name.strip() for name in records[0]]
    rows: List[Row] = []
    for record in records[1:]:
        row: Row = {}
        for idx, name in enumerate(header):
            row[name] = record[idx].strip() if idx < len(record) else ""
        rows.append(row)
    return rows


def read_table(path: Path, *, delimiter: Optional[str] = None) -> List[Row]:
    """Read a required table; raise :class:`MissingDataFileError` when absent."""

    if not path.exists():
        raise MissingDataFileError(f"required data file not found: {path}")
    text = read_text(path)
    return parse_csv(text, delimiter=delimiter or detect_delimiter(text))


def read_optional_table(path: Path, *, delimiter: Optional[str] = None) -> List[Row]:
    if not path.exists():
        logger.debug("Optional data file %s not found; treating as empty", path)
        return []
    return read_table(path, delimiter=delimiter)


def format_csv(rows: Iterable[Mapping[str, Any]], fieldnames: Sequence[str]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(fieldnames)
    for row in rows:
        writer.writerow(["" if row.get(name) is None else str(row.get(name)) for name in fieldnames])
    return buffer.getvalue()


def write_csv(path: Path, rows: Iterable[Mapping[str, Any]], fieldnames: Sequence[str]) -> None:
    """Rewrite ``path`` in full as UTF-8 with BOM and CRLF line endings.

    The content goes to a temporary file in the same directory first, so the old
    file stays intact until the replacement is complete.
    """

    payload = BOM + format_csv(rows, fieldnames)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def fieldnames_of(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    """Union of keys across rows, in first-seen order."""

    names: dict[str, None] = {}
    for row in rows:
        for key in row.keys():
            names.setdefault(key, None)
    return list(names)


def read_sheet_rows(path: Path, sheet: Optional[str] = None) -> List[List[Any]]:
    """Return raw positional rows from an ``.xlsx`` sheet or a CSV export of it.

    Workbook cells keep their native types (``datetime``, ``int``...); CSV cells
    are strings. Trailing empty cells are not trimmed.
    """

    if not path.exists():
        raise MissingDataFileError(f"sheet file not found: {path}")

    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        from openpyxl import load_workbook

        workbook = load_workbook(path, read_only=True, data_only=True)
        try:
            if sheet is None:
                worksheet = workbook.worksheets[0]
            elif sheet in workbook.sheetnames:
                worksheet = workbook[sheet]
            else:
                raise KeyError(
                    f"sheet {sheet!r} not found in {path.name}; sheets={', '.join(workbook.sheetnames)}"
                )
            return [list(values) for values in worksheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    text = strip_bom(read_text(path))
    return [list(record) for record in _raw_records(text, detect_delimiter(text))]


__all__ = [
    "MissingDataFileError",
    "Row",
    "detect_delimiter",
    "fieldnames_of",
    "format_csv",
    "parse_csv",
    "read_optional_table",
    "read_sheet_rows",
    "read_table",
    "read_text",
    "strip_bom",
    "write_csv",
]
