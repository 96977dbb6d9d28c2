"""Convert pasted squad spreadsheets (one player spread over several rows) into table rows.

Club sheets carry one player per block: a start row with the shirt number
followed by continuation rows holding a second nationality, the position
label and so on. :class:`BlockSplitter` partitions the raw rows into such
blocks and :func:`merge_block` folds a block into one set of fields.

Call-up sheets are simpler: one row per player, optionally followed by a row
carrying the position label. :class:`CallupSheetReader` tracks that pending
player.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from footydb.ingest.normalize import (
    cell_text,
    clean_player_name,
    normalize_date,
    normalize_height,
    normalize_key_text,
    normalize_position,
    normalize_shirt_no,
    normalize_text,
    parse_int_or_none,
    season_to_snapshot_date,
)
from footydb.models import CallupRow, ClubSquadRow
from footydb.resolve.clubs import ClubResolver


logger = logging.getLogger(__name__)

SHEET_SOURCE = "Transfermarkt (copypaste)"
NATIONALITY_SEPARATOR = " / "

RawRow = Sequence[Any]

_SEASON_LABEL_RE = re.compile(r"^\d{4}-\d{2}$")
_DIGITS_RE = re.compile(r"^\d+$")
_DMY_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})")
_YMD_ANYWHERE_RE = re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")


def _cell(row: RawRow, index: int) -> Any:
    if index < 0 or index >= len(row):
        return None
    return row[index]


def _text(row: RawRow, index: int) -> str:
    return cell_text(_cell(row, index))


def is_blank_row(row: RawRow) -> bool:
    return not any(cell_text(value) for value in row)


def is_marker_row(row: RawRow) -> bool:
    first = _cell(row, 0)
    return isinstance(first, str) and first.strip().startswith("###")


def is_header_row(row: RawRow) -> bool:
    first = _text(row, 0)
    second = _text(row, 1)
    return first in {"#", "＃"} and ("選手" in second or second.lower() == "player")


def is_shirt_token(value: Any) -> bool:
    text = cell_text(value)
    return text == "-" or bool(_DIGITS_RE.match(text))


def parse_sheet_date(value: Any) -> str:
    """Like :func:`normalize_date`, but also accepts ``dd/mm/yyyy`` and embedded dates."""

    iso = normalize_date(value)
    if iso:
        return iso
    text = normalize_text(value)
    match = _YMD_ANYWHERE_RE.search(text)
    if match:
        return normalize_date("-".join(match.groups()))
    match = _DMY_RE.search(text)
    if match:
        day, month, year = match.groups()
        return normalize_date(f"{year}-{month}-{day}")
    return ""


class BlockState(Enum):
    AWAITING_START = "awaiting-start"
    IN_BLOCK = "in-block"


@dataclass(frozen=True)
class SheetItem:
    """One unit produced by :class:`BlockSplitter`: a marker, a header or a player block."""

    kind: str
    rows: Tuple[RawRow, ...]


class BlockSplitter:
    """State machine turning raw rows into marker, header and block items.

    A block opens at a row whose start column holds a shirt-number token
    (digits, or ``-`` for "no number") and closes at the next start row,
    section marker or header row. Blank rows never belong to a block, and
    rows before the first start row are ignored.
    """

    def __init__(self, start_column: int = 0) -> None:
        self.start_column = start_column
        self.state = BlockState.AWAITING_START
        self._current: List[RawRow] = []

    def _close(self) -> List[SheetItem]:
        if self.state is BlockState.AWAITING_START:
            return []
        block = SheetItem("block", tuple(self._current))
        self._current = []
        self.state = BlockState.AWAITING_START
        return [block]

    def feed(self, row: RawRow) -> List[SheetItem]:
        if is_marker_row(row):
            return self._close() + [SheetItem("marker", (row,))]
        if is_header_row(row):
            return self._close() + [SheetItem("header", (row,))]
        if is_shirt_token(_cell(row, self.start_column)):
            items = self._close()
            self._current = [row]
            self.state = BlockState.IN_BLOCK
            return items
        if self.state is BlockState.IN_BLOCK and not is_blank_row(row):
            self._current.append(row)
        return []

    def close(self) -> List[SheetItem]:
        return self._close()


def split_blocks(rows: Iterable[RawRow], *, start_column: int = 0) -> Iterator[SheetItem]:
    splitter = BlockSplitter(start_column)
    for row in rows:
        yield from splitter.feed(row)
    yield from splitter.close()


def first_value(block: Sequence[RawRow], column: int) -> Any:
    """First non-empty cell of ``column``, scanning the block top to bottom."""

    if column < 0:
        return ""
    for row in block:
        value = _cell(row, column)
        if cell_text(value):
            return value
    return ""


def all_values(block: Sequence[RawRow], column: int) -> List[str]:
    """Distinct non-empty texts of ``column`` across the block, in order."""

    values: Dict[str, None] = {}
    if column >= 0:
        for row in block:
            text = normalize_text(_cell(row, column))
            if text:
                values.setdefault(text, None)
    return list(values)


def scan_position(block: Sequence[RawRow]) -> str:
    """Position code from the first cell anywhere in the block that names one."""

    for row in block:
        for value in row:
            code = normalize_position(value)
            if code:
                return code
    return ""


def merge_block(
    block: Sequence[RawRow],
    columns: Mapping[str, int],
    *,
    collect_all: Iterable[str] = ("nationality",),
    separator: str = NATIONALITY_SEPARATOR,
) -> Dict[str, Any]:
    """Fold a block into ``{field: value}``; ``position`` is found by scanning every cell."""

    multi = set(collect_all)
    merged: Dict[str, Any] = {}
    for name, column in columns.items():
        if name in multi:
            merged[name] = separator.join(all_values(block, column))
        else:
            merged[name] = first_value(block, column)
    merged["position"] = scan_position(block)
    return merged


@dataclass(frozen=True)
class HeaderIndex:
    """Column positions of the pasted club sheet, re-derived from every header row."""

    shirt: int = 0
    name1: int = 1
    name2: int = 2
    birth: int = 3
    nationality: int = 4
    height: int = 6
    foot: int = 7
    join: int = 8
    prev: int = 9
    contract: int = -1

    @classmethod
    def from_header_row(cls, row: RawRow) -> "HeaderIndex":
        labels = [cell_text(value) for value in row]

        def find(default: int, *needles: str) -> int:
            for index, label in enumerate(labels):
                if label and any(needle in label for needle in needles):
                    return index
            return default

        return cls(
            birth=find(3, "生年月日"),
            nationality=find(4, "国籍"),
            height=find(6, "身長"),
            foot=find(7, "利き足"),
            join=find(8, "加入日"),
            prev=find(9, "前所属"),
            contract=find(-1, "契約", "満了", "終了"),
        )

    def columns(self) -> Dict[str, int]:
        return {
            "shirt": self.shirt,
            "name1": self.name1,
            "name2": self.name2,
            "birth": self.birth,
            "nationality": self.nationality,
            "height": self.height,
            "foot": self.foot,
            "join": self.join,
            "prev": self.prev,
            "contract": self.contract,
        }


@dataclass(frozen=True)
class ConversionReport:
    total_rows: int
    missing_keys: int
    unresolved: List[str] = field(default_factory=list)


@dataclass
class _ClubContext:
    season: str
    league: str = ""
    club: str = ""
    league_key: str = ""
    club_key: str = ""
    club_display_ja: str = ""


def parse_club_marker(marker: str) -> Tuple[str, str, str]:
    """Split ``"### [season / ]League / Club"`` into ``(season, league, club)``."""

    text = re.sub(r"^###\s*", "", marker.strip()).strip()
    parts = [part.strip() for part in text.split(" / ") if part.strip()]
    if len(parts) >= 3 and _SEASON_LABEL_RE.match(parts[0]):
        return parts[0], parts[1], " / ".join(parts[2:])
    if len(parts) >= 2:
        return "", parts[0], " / ".join(parts[1:])
    return "", "", text


def convert_club_sheet(
    rows: Iterable[RawRow],
    resolver: ClubResolver,
    *,
    season: str = "",
    window: str = "winter",
    source: str = SHEET_SOURCE,
    today: Optional[str] = None,
) -> Tuple[List[ClubSquadRow], ConversionReport]:
    """Convert a pasted club-squad sheet into :class:`ClubSquadRow` records.

    Section markers select the club (and optionally the season); the club is
    resolved to master keys through ``resolver``. Players of clubs that do not
    resolve are still emitted with empty keys and counted in the report.
    """

    rows = list(rows)
    first_header = next((row for row in rows if is_header_row(row)), None)
    header = HeaderIndex.from_header_row(first_header) if first_header is not None else HeaderIndex()
    context = _ClubContext(season=season)
    fallback_snapshot = normalize_date(today) if today else ""

    out: List[ClubSquadRow] = []
    missing_keys = 0
    unresolved: Dict[str, None] = {}

    for item in split_blocks(rows, start_column=header.shirt):
        if item.kind == "marker":
            marker_season, league, club = parse_club_marker(str(item.rows[0][0]))
            if marker_season:
                context.season = marker_season
            context.league = league or context.league
            context.club = club or context.club
            resolved = resolver.resolve(context.league, context.club)
            if resolved is None:
                context.league_key = context.club_key = context.club_display_ja = ""
                unresolved.setdefault(f"{context.league} / {context.club}", None)
            else:
                context.league_key = resolved.league_key
                context.club_key = resolved.club_key
                context.club_display_ja = resolved.club_display_ja
            continue
        if item.kind == "header":
            header = HeaderIndex.from_header_row(item.rows[0])
            continue

        merged = merge_block(item.rows, header.columns())
        name_a = clean_player_name(merged["name1"])
        name_b = clean_player_name(merged["name2"])
        name_en = name_b or name_a
        snapshot = season_to_snapshot_date(context.season) or fallback_snapshot
        if not snapshot:
            snapshot = date.today().isoformat()

        if not context.club_key or not context.league_key:
            missing_keys += 1
            logger.warning("Missing club_key/league_key for %s / %s", context.league, context.club)

        out.append(
            ClubSquadRow(
                season=context.season,
                window="winter" if window == "winter" else "summer",
                league=context.league,
                club=context.club_display_ja or context.club,
                league_key=context.league_key,
                club_key=context.club_key,
                club_shirt_no=normalize_shirt_no(merged["shirt"]),
                position_primary=merged["position"],
                name_en=name_en,
                birth_date=parse_sheet_date(merged["birth"]),
                height_cm=parse_int_or_none(normalize_height(merged["height"])),
                snapshot_date=snapshot,
                name_ja=name_en,
                nationality=merged["nationality"],
                foot=normalize_text(merged["foot"]),
                join_date=parse_sheet_date(merged["join"]),
                prev_club=normalize_text(merged["prev"]),
                contract_until=parse_sheet_date(merged["contract"]),
                source=source,
            )
        )

    report = ConversionReport(total_rows=len(out), missing_keys=missing_keys, unresolved=list(unresolved))
    logger.info("Converted %d club squad rows (%d without keys)", len(out), missing_keys)
    return out, report


COUNTRY_JA_TO_EN: Dict[str, str] = {
    "カメルーン": "Cameroon",
    "ナイジェリア": "Nigeria",
    "ジョージア": "Georgia",
    "スロベニア": "Slovenia",
    "ハンガリー": "Hungary",
    "ボリビア": "Bolivia",
    "ジャマイカ": "Jamaica",
    "ニューカレドニア": "New Caledonia",
    "スリナム": "Suriname",
    "コンゴ民主共和国": "Democratic Republic of the Congo",
    "イラク": "Iraq",
}


@dataclass(frozen=True)
class CountryInfo:
    country: str
    confederation: str
    confederation_bucket: str


def normalize_bucket(value: str) -> str:
    text = normalize_text(value)
    return "QUALIFIED" if text == "Qualified" else text


def build_country_master(
    rows: Sequence[RawRow],
    *,
    competition: str,
    edition: str,
) -> Dict[str, CountryInfo]:
    """Index a country master sheet (header row first) by normalized country name.

    Rows are limited to ``competition``/``edition`` when the sheet has those
    columns. Raises ``ValueError`` when a required column is missing.
    """

    if not rows:
        return {}
    header = [cell_text(value) for value in rows[0]]

    def index_of(name: str) -> int:
        return header.index(name) if name in header else -1

    idx_country = index_of("country")
    idx_conf = index_of("confederation")
    idx_bucket = index_of("confederation_bucket")
    idx_competition = index_of("competition")
    idx_edition = index_of("edition")
    if min(idx_country, idx_conf, idx_bucket) < 0:
        raise ValueError(
            "country master needs country/confederation/confederation_bucket columns; "
            f"headers={','.join(header)}"
        )

    master: Dict[str, CountryInfo] = {}
    for row in rows[1:]:
        country = _text(row, idx_country)
        if not country:
            continue
        if idx_competition >= 0 and _text(row, idx_competition) != competition:
            continue
        if idx_edition >= 0 and _text(row, idx_edition) != str(edition):
            continue
        master[normalize_key_text(country)] = CountryInfo(
            country=country,
            confederation=_text(row, idx_conf),
            confederation_bucket=normalize_bucket(_text(row, idx_bucket)),
        )
    return master


@dataclass
class _PendingCallup:
    country: str
    shirt_no: str
    name_en: str
    birth_date: str
    height_cm: str
    current_club: str
    national_debut: str
    position_guess: str


def _position_row(row: RawRow) -> str:
    """Position code when ``row`` is a position-label row, else ``""``."""

    cells = [cell_text(value) for value in row if cell_text(value)]
    if not cells:
        return ""
    if _DIGITS_RE.match(cells[0]) or cells[0] in {"-", "#", "＃"}:
        return ""
    for text in cells:
        code = normalize_position(text)
        if code:
            return code
    return ""


class CallupSheetReader:
    """Stateful reader for pasted national-team call-up sheets.

    ``### Country`` markers switch the current country. A player row (name in
    column 1) becomes pending; it is finalized by the next row when that row is
    a position label, or otherwise by the next player row, marker or the end of
    input using the position guessed from column 2.
    """

    def __init__(
        self,
        master: Mapping[str, CountryInfo],
        *,
        competition: str,
        edition: str,
        snapshot_date: str,
        source: str = SHEET_SOURCE,
    ) -> None:
        self.master = master
        self.competition = competition
        self.edition = str(edition)
        self.snapshot_date = snapshot_date
        self.source = source
        self.country = ""
        self.rows: List[CallupRow] = []
        self._pending: Optional[_PendingCallup] = None
        self._missing: Dict[str, None] = {}

    @property
    def missing_countries(self) -> List[str]:
        return sorted(self._missing)

    def _flush(self, position: str) -> None:
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        lookup_name = COUNTRY_JA_TO_EN.get(pending.country, pending.country)
        info = self.master.get(normalize_key_text(lookup_name))
        if info is None:
            self._missing.setdefault(pending.country, None)
        self.rows.append(
            CallupRow(
                competition=self.competition,
                edition=self.edition,
                confederation=info.confederation if info else "",
                confederation_bucket=info.confederation_bucket if info else "",
                country=pending.country,
                nt_shirt_no=pending.shirt_no,
                position_primary=position or pending.position_guess,
                name_en=pending.name_en,
                birth_date=pending.birth_date,
                height_cm=pending.height_cm,
                current_club=pending.current_club,
                snapshot_date=self.snapshot_date,
                name_ja=pending.name_en,
                national_debut=pending.national_debut,
                source=self.source,
            )
        )

    def feed(self, row: RawRow) -> None:
        first = _cell(row, 0)
        if isinstance(first, str) and first.startswith("### "):
            self._flush("")
            self.country = first[4:].strip()
            return
        if not self.country:
            return

        if self._pending is not None:
            position = _position_row(row)
            if position:
                self._flush(position)
                return

        if is_header_row(row):
            return
        name_en = _text(row, 1)
        if not name_en or name_en.lower() == "player" or name_en == "選手":
            return

        self._flush("")
        self._pending = _PendingCallup(
            country=self.country,
            shirt_no=normalize_shirt_no(_cell(row, 0)),
            name_en=name_en,
            birth_date=parse_sheet_date(_cell(row, 3)),
            height_cm=normalize_height(_cell(row, 5)),
            current_club=_text(row, 4),
            national_debut=parse_sheet_date(_cell(row, 9)),
            position_guess=normalize_position(_cell(row, 2)),
        )

    def close(self) -> List[CallupRow]:
        self._flush("")
        return self.rows


def convert_callup_sheet(
    rows: Iterable[RawRow],
    master: Mapping[str, CountryInfo],
    *,
    competition: str,
    edition: str,
    snapshot_date: str,
    source: str = SHEET_SOURCE,
) -> Tuple[List[CallupRow], ConversionReport]:
    reader = CallupSheetReader(
        master,
        competition=competition,
        edition=edition,
        snapshot_date=snapshot_date,
        source=source,
    )
    for row in rows:
        reader.feed(row)
    callups = reader.close()
    if reader.missing_countries:
        logger.warning("Country master is missing: %s", ", ".join(reader.missing_countries))
    report = ConversionReport(total_rows=len(callups), missing_keys=0, unresolved=reader.missing_countries)
    logger.info("Converted %d call-up rows", len(callups))
    return callups, report


__all__ = [
    "COUNTRY_JA_TO_EN",
    "SHEET_SOURCE",
    "BlockSplitter",
    "BlockState",
    "CallupSheetReader",
    "ConversionReport",
    "CountryInfo",
    "HeaderIndex",
    "SheetItem",
    "all_values",
    "build_country_master",
    "convert_callup_sheet",
    "convert_club_sheet",
    "first_value",
    "is_header_row",
    "is_marker_row",
    "is_shirt_token",
    "merge_block",
    "normalize_bucket",
    "parse_club_marker",
    "parse_sheet_date",
    "scan_position",
    "split_blocks",
]
