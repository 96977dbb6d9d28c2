"""Input adapters: delimited-text reading and field normalization.

Typed table loaders live in :mod:`footydb.ingest.tables` and the spreadsheet
block converters in :mod:`footydb.ingest.blocks`; both depend on the club
resolver and are imported from their modules directly.
"""

from .normalize import (
    normalize_date,
    normalize_height,
    normalize_key_text,
    normalize_position,
    normalize_text,
)
from .tabular import (
    MissingDataFileError,
    parse_csv,
    read_optional_table,
    read_sheet_rows,
    read_table,
    write_csv,
)

__all__ = [
    "MissingDataFileError",
    "normalize_date",
    "normalize_height",
    "normalize_key_text",
    "normalize_position",
    "normalize_text",
    "parse_csv",
    "read_optional_table",
    "read_sheet_rows",
    "read_table",
    "write_csv",
]
