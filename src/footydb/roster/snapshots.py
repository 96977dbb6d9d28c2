"""Latest-snapshot selection, roster orderings and representative-history helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from footydb.ingest.normalize import date_sort_key, normalize_date
from footydb.models import CallupRow, ClubSquadRow
from footydb.names.keys import is_keyable, key_of


T = TypeVar("T")

POSITION_ORDER = {"GK": 0, "DF": 1, "MF": 2, "FW": 3}
UNNUMBERED_SHIRTS = {"", "-", "\u2014"}


def latest_snapshot(
    rows: Iterable[T],
    *,
    group_key: Callable[[T], Hashable],
    player_key: Callable[[T], Hashable],
    snapshot_of: Callable[[T], str],
) -> List[T]:
    """Keep one row per ``(group, player)``: the one from the newest snapshot.

    Within a group only rows dated with the group's newest snapshot survive,
    so undated rows are dropped whenever any row of the group is dated. Groups
    without any dated row keep all rows. Output follows input order.
    """

    rows = list(rows)
    newest: Dict[Hashable, str] = {}
    for row in rows:
        stamp = date_sort_key(snapshot_of(row))
        group = group_key(row)
        if stamp > newest.get(group, ""):
            newest[group] = stamp

    best: Dict[Tuple[Hashable, Hashable], Tuple[str, T]] = {}
    for row in rows:
        group = group_key(row)
        stamp = date_sort_key(snapshot_of(row))
        if newest.get(group) and stamp != newest[group]:
            continue
        slot = (group, player_key(row))
        current = best.get(slot)
        if current is None or stamp > current[0]:
            best[slot] = (stamp, row)
    return [row for _, row in best.values()]


def _player_identity(name_en: str, birth_date: str) -> Tuple[str, str]:
    return ((name_en or "").strip(), normalize_date(birth_date) or (birth_date or "").strip())


def latest_callups(rows: Iterable[CallupRow]) -> List[CallupRow]:
    """Current call-up per player in each (competition, edition, country)."""

    usable = [row for row in rows if row.country.strip() and row.name_en.strip()]
    return latest_snapshot(
        usable,
        group_key=lambda row: (row.competition, row.edition, row.country),
        player_key=lambda row: _player_identity(row.name_en, row.birth_date),
        snapshot_of=lambda row: row.snapshot_date,
    )


def latest_club_squads(rows: Iterable[ClubSquadRow]) -> List[ClubSquadRow]:
    """Current squad entry per player in each (season, club_key)."""

    return latest_snapshot(
        rows,
        group_key=lambda row: (row.season, row.club_key),
        player_key=lambda row: _player_identity(row.name_en, row.birth_date),
        snapshot_of=lambda row: row.snapshot_date,
    )


def _position_rank(position: str) -> int:
    return POSITION_ORDER.get((position or "").strip().upper(), 9)


def _shirt_rank(shirt: str) -> tuple:
    text = (shirt or "").strip()
    if text in UNNUMBERED_SHIRTS:
        return (1, 0, 0.0, "")
    try:
        return (0, 0, float(text), text)
    except ValueError:
        return (0, 1, 0.0, text)


def sort_for_roster(rows: Iterable[CallupRow]) -> List[CallupRow]:
    """GK, DF, MF, FW then others; numbered shirts ascending before unnumbered; then name."""

    return sorted(
        rows,
        key=lambda row: (_position_rank(row.position_primary), _shirt_rank(row.nt_shirt_no), row.name_en),
    )


def _shirt_number(shirt: str) -> float:
    try:
        return float((shirt or "").strip())
    except ValueError:
        return math.inf


def sort_club_roster(rows: Optional[Iterable[ClubSquadRow]]) -> List[ClubSquadRow]:
    if not rows:
        return []
    return sorted(
        rows,
        key=lambda row: (
            _position_rank(row.position_primary),
            _shirt_number(row.club_shirt_no),
            row.name_ja or row.name_en,
        ),
    )


def bucket_type(bucket: str) -> str:
    """Classify a confederation bucket as ``po``, ``qualified``, ``elim`` or ``unknown``."""

    value = (bucket or "").strip().upper()
    if value.startswith("UEFA_PO_") or value in {"CONF_PO", "INTER_PO"}:
        return "po"
    if value in {"QUALIFIED", "WCQ"}:
        return "qualified"
    if value == "ELIM":
        return "elim"
    return "unknown"


@dataclass(frozen=True)
class Representation:
    country: str
    bucket: str

    @property
    def bucket_type(self) -> str:
        return bucket_type(self.bucket)


def _callup_key(row: CallupRow) -> str:
    """Identity key of a call-up row, or ``""`` when the name or birth date is missing."""

    name, birth = _player_identity(row.name_en, row.birth_date)
    return key_of(name, birth) if is_keyable(name, birth) else ""


def representative_countries(
    callups: Iterable[CallupRow],
    competition: str,
    edition: str,
) -> Dict[str, Representation]:
    """Player key -> the first country found for that player in ``competition``/``edition``."""

    found: Dict[str, Representation] = {}
    for row in callups:
        if row.competition != competition or row.edition != str(edition):
            continue
        key = _callup_key(row)
        country = row.country.strip()
        if not key or not country:
            continue
        found.setdefault(key, Representation(country=country, bucket=row.confederation_bucket.strip()))
    return found


@dataclass(frozen=True)
class HistoryEntry:
    competition: str
    edition: str
    country: str

    @property
    def label(self) -> str:
        short = self.edition[2:] if len(self.edition) == 4 and self.edition.isdigit() else self.edition
        return f"{self.competition}{short}"


def _edition_order(edition: str) -> float:
    try:
        return -float(edition)
    except ValueError:
        return math.inf


def representative_history(
    callups: Iterable[CallupRow],
    competition: str,
    *,
    exclude_edition: Optional[str] = None,
    limit: int = 6,
) -> Dict[str, List[HistoryEntry]]:
    """Per player key, the editions called up for (newest first) with the country of each.

    When a player appears in several snapshots of one edition, the country of
    the newest snapshot is used.
    """

    competition = (competition or "").strip()
    excluded = str(exclude_edition or "").strip()
    by_key: Dict[str, Dict[str, Tuple[str, str]]] = {}
    for row in callups:
        if row.competition != competition:
            continue
        edition = row.edition.strip()
        if not edition or (excluded and edition == excluded):
            continue
        key = _callup_key(row)
        country = row.country.strip()
        if not key or not country:
            continue
        snapshot = date_sort_key(row.snapshot_date)
        editions = by_key.setdefault(key, {})
        previous = editions.get(edition)
        if previous is None or (snapshot and snapshot > previous[0]):
            editions[edition] = (snapshot, country)

    history: Dict[str, List[HistoryEntry]] = {}
    for key, editions in by_key.items():
        ordered = sorted(editions, key=_edition_order)[:limit]
        history[key] = [HistoryEntry(competition, edition, editions[edition][1]) for edition in ordered]
    return history


def history_for(history: Dict[str, List[HistoryEntry]], name_en: str, birth_date: str) -> Sequence[HistoryEntry]:
    name, birth = _player_identity(name_en, birth_date)
    if not is_keyable(name, birth):
        return []
    return history.get(key_of(name, birth), [])


__all__ = [
    "HistoryEntry",
    "POSITION_ORDER",
    "Representation",
    "bucket_type",
    "history_for",
    "latest_callups",
    "latest_club_squads",
    "latest_snapshot",
    "representative_countries",
    "representative_history",
    "sort_club_roster",
    "sort_for_roster",
]
