"""Total field normalizers: every function returns an empty value instead of raising."""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from typing import Any, Optional


_SPACE_VARIANTS_RE = re.compile("[\u00a0\u2007\u202f\u3000]")
_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_GENERIC_DATE_RE = re.compile(r"^(\d{4})[/.\-](\d{1,2})[/.\-](\d{1,2})")
_LOOSE_DATE_RE = re.compile(r"(\d{4}).*?(\d{1,2}).*?(\d{1,2})")

_HEIGHT_METERS_RE = re.compile(r"(\d)[.,](\d+)\s*m", re.IGNORECASE)
_HEIGHT_CM_RE = re.compile(r"(\d{2,3})\s*cm", re.IGNORECASE)

_SEASON_RE = re.compile(r"^(\d{4})-(\d{2})$")
_SEASON_LABEL_RE = re.compile(r"^(\d{4})\s*[-\u2013\u2014]\s*(\d{2}|\d{4})$")
_YEAR_MONTH_RE = re.compile(r"^(\d{4})[-/](\d{1,2})")
_PLAYER_NAME_SUFFIX_RE = re.compile(
    r"[（(]\s*\d{4}\s*年\s*生(?:まれ)?のサッカー選手\s*[）)]\s*$"
)

# Excel stores dates as days since 1899-12-30.
_EXCEL_EPOCH = date(1899, 12, 30)


def cell_text(value: Any) -> str:
    """Render a raw spreadsheet cell as trimmed text."""

    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_text(value: Any) -> str:
    """Trim, turn exotic spaces into ASCII spaces and collapse whitespace runs."""

    text = cell_text(value)
    if not text:
        return ""
    text = _SPACE_VARIANTS_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_key_text(value: Any) -> str:
    """Comparison form used by master-table lookups."""

    text = _SPACE_VARIANTS_RE.sub(" ", cell_text(value))
    text = _ZERO_WIDTH_RE.sub("", text)
    text = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE_RE.sub(" ", text).strip()


def _ymd(year: str, month: str, day: str) -> str:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return ""


def normalize_date(value: Any) -> str:
    """Return ``YYYY-MM-DD`` or ``""``.

    Accepts ISO dates (optionally followed by a time), ``YYYY/M/D`` and
    ``YYYY.M.D`` with trailing annotations such as ``"1995/09/15 (29)"``, plus
    native ``date``/``datetime`` cells and Excel serial day numbers.
    """

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 20000 < value < 60000:
            return (_EXCEL_EPOCH + timedelta(days=int(value))).isoformat()
        return ""

    text = normalize_text(value)
    if not text:
        return ""
    match = _ISO_DATE_RE.match(text) or _GENERIC_DATE_RE.match(text)
    if not match:
        return ""
    return _ymd(*match.groups())


def date_sort_key(value: Any) -> str:
    """``YYYYMMDD`` for snapshot comparisons, ``""`` when nothing date-like is present."""

    iso = normalize_date(value)
    if iso:
        return iso.replace("-", "")
    text = normalize_text(value)
    match = _LOOSE_DATE_RE.search(text)
    if not match:
        return ""
    iso = _ymd(*match.groups())
    return iso.replace("-", "")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_height(value: Any) -> str:
    """Convert "1,83m", "1.83 m" or "183cm" into whole centimeters ("183")."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 1.0 <= value < 3.0:
            return str(_round_half_up(value * 100))
        if 100 <= value < 300:
            return str(_round_half_up(value))
        return ""

    text = normalize_text(value)
    if not text or text == "-":
        return ""
    match = _HEIGHT_METERS_RE.search(text)
    if match:
        meters = float(f"{match.group(1)}.{match.group(2)}")
        return str(_round_half_up(meters * 100))
    match = _HEIGHT_CM_RE.search(text)
    if match:
        return str(int(match.group(1)))
    return ""


# Checked in order; the first category with a matching term wins. Japanese
# wing-back labels contain the winger term, hence the lookaheads.
_POSITION_TERMS: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = (
    ("GK", (re.compile("ゴールキーパー"), re.compile("goalkeeper"), re.compile(r"\bkeeper\b"))),
    (
        "FW",
        (
            re.compile("フォワード"),
            re.compile("ストライカー"),
            re.compile("ウイング(?!バック)"),
            re.compile("ウィング(?!バック)"),
            re.compile("ウィンガー"),
            re.compile("winger"),
            re.compile("forward"),
            re.compile("striker"),
        ),
    ),
    ("MF", (re.compile("ミッド"), re.compile("中盤"), re.compile("midfield"))),
    (
        "DF",
        (
            re.compile("バック"),
            re.compile("ディフェンダー"),
            re.compile("back"),
            re.compile("defender"),
            re.compile("sweeper"),
        ),
    ),
)

POSITION_CODES = ("GK", "DF", "MF", "FW")


def normalize_position(value: Any) -> str:
    """Map a free-text position label to GK/DF/MF/FW, or ``""``."""

    raw = normalize_text(value)
    if not raw:
        return ""
    if raw.upper() in POSITION_CODES:
        return raw.upper()
    text = raw.casefold()
    for code, patterns in _POSITION_TERMS:
        if any(pattern.search(text) for pattern in patterns):
            return code
    return ""


def normalize_window(value: Any) -> str:
    """Only an explicit "winter" is winter; blanks and junk count as summer."""

    return "winter" if normalize_text(value).lower() == "winter" else "summer"


def parse_int_or_none(value: Any) -> Optional[int]:
    text = normalize_text(value)
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def normalize_shirt_no(value: Any) -> str:
    text = normalize_text(value)
    if text in {"-", "\u2014", "\u2013"}:
        return ""
    return text


def season_to_snapshot_date(season: Any) -> str:
    """"2017-18" -> "2018-02-01"; "1999-00" rolls into the next century."""

    match = _SEASON_RE.match(normalize_text(season))
    if not match:
        return ""
    start = int(match.group(1))
    end = (start // 100) * 100 + int(match.group(2))
    if end < start:
        end += 100
    return f"{end}-02-01"


def season_short(season: Any) -> str:
    """"2025-26" -> "25-26"; unrecognized labels are returned unchanged."""

    text = normalize_text(season)
    match = _SEASON_LABEL_RE.match(text)
    if not match:
        return text
    right = match.group(2)
    return f"{match.group(1)[2:]}-{right[2:] if len(right) == 4 else right}"


def to_year_month(value: Any) -> str:
    text = normalize_text(value)
    match = _YEAR_MONTH_RE.match(text)
    if not match:
        return text
    return f"{match.group(1)}-{int(match.group(2)):02d}"


def calc_age(birth_date: Any, as_of: Any = None) -> Optional[int]:
    """Age in whole years on ``as_of`` (today when omitted)."""

    birth = normalize_date(birth_date)
    if not birth:
        return None
    reference = normalize_date(as_of) if as_of else ""
    today = date.fromisoformat(reference) if reference else date.today()
    year, month, day = (int(part) for part in birth.split("-"))
    age = today.year - year
    if (today.month, today.day) < (month, day):
        age -= 1
    return age


def clean_player_name(value: Any) -> str:
    """Drop the "(1998年生のサッカー選手)" disambiguation suffix copied from wiki titles."""

    return _PLAYER_NAME_SUFFIX_RE.sub("", normalize_text(value)).strip()


__all__ = [
    "POSITION_CODES",
    "calc_age",
    "cell_text",
    "clean_player_name",
    "date_sort_key",
    "normalize_date",
    "normalize_height",
    "normalize_key_text",
    "normalize_position",
    "normalize_shirt_no",
    "normalize_text",
    "normalize_window",
    "parse_int_or_none",
    "season_short",
    "season_to_snapshot_date",
    "to_year_month",
]
