"""Typed loaders for every curated input table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from footydb.ingest.normalize import (
    normalize_date,
    normalize_text,
    normalize_window,
    parse_int_or_none,
)
from footydb.ingest.tabular import read_optional_table, read_table
from footydb.models import AwardRow, CallupRow, ClubSquadRow, MatchEvent, TransferEvent
from footydb.resolve.clubs import ClubIndex


logger = logging.getLogger(__name__)

MATCH_EVENT_FIELDS = (
    "competition",
    "edition",
    "match_id",
    "event_id",
    "event_type",
    "team",
    "player",
    "assist",
    "minute",
    "period",
    "round",
    "vs",
    "note",
)

CLUB_SQUAD_FIELDS = (
    "season",
    "window",
    "league",
    "club",
    "club_key",
    "club_shirt_no",
    "position_primary",
    "is_star",
    "name_en",
    "birth_date",
    "height_cm",
    "snapshot_date",
    "name_ja",
    "nationality",
    "foot",
    "join_date",
    "prev_club",
    "contract_until",
    "source",
    "notes",
    "league_key",
)

CALLUP_FIELDS = (
    "competition",
    "edition",
    "confederation",
    "confederation_bucket",
    "country",
    "nt_shirt_no",
    "position_primary",
    "is_star",
    "name_en",
    "birth_date",
    "height_cm",
    "current_club",
    "snapshot_date",
    "name_ja",
    "national_debut",
    "source",
    "notes",
)

TRANSFER_FIELDS = (
    "season",
    "window",
    "date",
    "player_name",
    "from_club_key",
    "to_club_key",
    "move_type",
    "note",
    "importance",
)

AWARD_FIELDS = ("competition", "edition", "award_key", "award_name", "rank", "player", "team", "note")


def _get(row: Mapping[str, str], column: str) -> str:
    return (row.get(column) or "").strip()


def match_events_from_rows(rows: Iterable[Mapping[str, str]]) -> List[MatchEvent]:
    events: List[MatchEvent] = []
    for row in rows:
        values = {name: _get(row, name) for name in MATCH_EVENT_FIELDS}
        values["event_type"] = values["event_type"].upper()
        events.append(MatchEvent(**values))
    return events


def load_match_events(path: Path) -> List[MatchEvent]:
    return match_events_from_rows(read_table(path))


def club_squads_from_rows(rows: Iterable[Mapping[str, str]]) -> List[ClubSquadRow]:
    """Rows lacking ``league_key`` or ``club_key`` are dropped."""

    squads: List[ClubSquadRow] = []
    dropped = 0
    for row in rows:
        league_key = _get(row, "league_key")
        club_key = _get(row, "club_key")
        if not league_key or not club_key:
            dropped += 1
            continue
        height = parse_int_or_none(row.get("height_cm"))
        squads.append(
            ClubSquadRow(
                season=_get(row, "season"),
                window=normalize_window(row.get("window")),
                league=row.get("league") or "",
                club=row.get("club") or "",
                league_key=league_key,
                club_key=club_key,
                club_shirt_no=row.get("club_shirt_no") or "",
                position_primary=row.get("position_primary") or "",
                is_star=row.get("is_star") or "",
                name_en=row.get("name_en") or "",
                birth_date=row.get("birth_date") or "",
                height_cm=height if height is not None and height >= 0 else None,
                snapshot_date=row.get("snapshot_date") or "",
                name_ja=row.get("name_ja") or "",
                nationality=row.get("nationality") or "",
                foot=row.get("foot") or "",
                join_date=row.get("join_date") or "",
                prev_club=row.get("prev_club") or "",
                contract_until=row.get("contract_until") or "",
                source=row.get("source") or "",
                notes=row.get("notes") or "",
            )
        )
    if dropped:
        logger.warning("Dropped %d club squad rows without league_key/club_key", dropped)
    return squads


def load_club_squads(path: Path) -> List[ClubSquadRow]:
    return club_squads_from_rows(read_table(path))


def callups_from_rows(rows: Iterable[Mapping[str, str]]) -> List[CallupRow]:
    """Every call-up row that names both a country and a player."""

    callups: List[CallupRow] = []
    for row in rows:
        country = _get(row, "country")
        name_en = _get(row, "name_en")
        if not country or not name_en:
            continue
        values = {name: row.get(name) or "" for name in CALLUP_FIELDS}
        values.update(country=country, name_en=name_en)
        callups.append(CallupRow(**values))
    return callups


def load_callups(path: Path) -> List[CallupRow]:
    return callups_from_rows(read_table(path))


_IMPORTANCE_ORDER = {"A": 0, "B": 1, "C": 2}


def transfer_sort_key(event: TransferEvent) -> tuple:
    """Importance A, B, C then others; newest date first (undated last); player name."""

    importance = _IMPORTANCE_ORDER.get(event.importance.strip().upper(), 9)
    date_key = -int((event.date_iso or "0000-00-00").replace("-", ""))
    return (importance, date_key, event.player_name.casefold())


def transfers_from_rows(
    rows: Iterable[Mapping[str, str]],
    clubs: ClubIndex,
    *,
    season: Optional[str] = None,
    window: Optional[str] = None,
) -> List[TransferEvent]:
    season_filter = normalize_text(season)
    window_filter = normalize_text(window).lower()

    events: List[TransferEvent] = []
    for row in rows:
        row_season = normalize_text(row.get("season"))
        row_window = normalize_text(row.get("window"))
        if season_filter and row_season != season_filter:
            continue
        if window_filter and row_window.lower() != window_filter:
            continue

        player_name = normalize_text(row.get("player_name"))
        if not player_name:
            continue

        date_raw = normalize_text(row.get("date"))
        from_key = normalize_text(row.get("from_club_key"))
        to_key = normalize_text(row.get("to_club_key"))
        from_ja, from_en, from_resolved = clubs.display(from_key)
        to_ja, to_en, to_resolved = clubs.display(to_key)
        if from_key and not from_resolved:
            logger.debug("Transfer club %r not in club master; showing raw text", from_key)
        if to_key and not to_resolved:
            logger.debug("Transfer club %r not in club master; showing raw text", to_key)

        events.append(
            TransferEvent(
                season=row_season,
                window=row_window,
                date_raw=date_raw,
                date_iso=normalize_date(date_raw),
                player_name=player_name,
                from_club_key=from_key,
                to_club_key=to_key,
                move_type=normalize_text(row.get("move_type")) or "transfer",
                note=normalize_text(row.get("note")),
                importance=normalize_text(row.get("importance")) or "C",
                from_club_display_ja=from_ja,
                from_club_display_en=from_en,
                to_club_display_ja=to_ja,
                to_club_display_en=to_en,
                from_club_resolved=from_resolved,
                to_club_resolved=to_resolved,
            )
        )
    return sorted(events, key=transfer_sort_key)


def load_transfers(
    path: Path,
    clubs: ClubIndex,
    *,
    season: Optional[str] = None,
    window: Optional[str] = None,
) -> List[TransferEvent]:
    """The transfers table is optional: a missing file yields no events."""

    return transfers_from_rows(read_optional_table(path), clubs, season=season, window=window)


def awards_from_rows(rows: Iterable[Mapping[str, str]]) -> List[AwardRow]:
    return [AwardRow(**{name: _get(row, name) for name in AWARD_FIELDS}) for row in rows]


def load_awards(path: Path) -> List[AwardRow]:
    return awards_from_rows(read_table(path))


__all__ = [
    "AWARD_FIELDS",
    "CALLUP_FIELDS",
    "CLUB_SQUAD_FIELDS",
    "MATCH_EVENT_FIELDS",
    "TRANSFER_FIELDS",
    "awards_from_rows",
    "callups_from_rows",
    "club_squads_from_rows",
    "load_awards",
    "load_callups",
    "load_club_squads",
    "load_match_events",
    "load_transfers",
    "match_events_from_rows",
    "transfer_sort_key",
    "transfers_from_rows",
]
