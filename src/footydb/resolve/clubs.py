"""Club and league master tables, and resolution of free-text club names to keys."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from footydb.ingest.normalize import normalize_key_text, normalize_text
from footydb.ingest.tabular import read_table
from footydb.models import ClubMasterRow, DuplicateKeyError, LeagueMasterRow


logger = logging.getLogger(__name__)

ALIAS_SEPARATORS_RE = re.compile(r"[|/;,]")


def split_aliases(value: str, *, pattern: re.Pattern[str] = ALIAS_SEPARATORS_RE) -> List[str]:
    return [part.strip() for part in pattern.split(value or "") if part.strip()]


def _pick(row: Mapping[str, str], *columns: str) -> str:
    """First column present in the row wins, even when its value is empty."""

    for column in columns:
        if column in row:
            return row[column] or ""
    return ""


def club_master_from_rows(rows: Iterable[Mapping[str, str]], *, strict: bool = False) -> List[ClubMasterRow]:
    clubs: List[ClubMasterRow] = []
    seen: set[str] = set()
    for row in rows:
        club = ClubMasterRow(
            club_key=_pick(row, "club_key").strip(),
            league_key=_pick(row, "league_key").strip(),
            league_display=_pick(row, "league_display", "league_name_en", "league_name_ja"),
            club_display_ja=_pick(row, "club_display_ja", "club_name_ja"),
            club_display_en=_pick(row, "club_display_en", "club_name_en"),
            sort_ja=_pick(row, "sort_ja"),
            aliases=_pick(row, "aliases"),
            club_alias_en=_pick(row, "club_alias_en"),
            club_alias_ja=_pick(row, "club_alias_ja"),
            status=_pick(row, "status") or "active",
            notes=_pick(row, "notes"),
        )
        if club.club_key:
            if club.club_key in seen:
                if strict:
                    raise DuplicateKeyError(f"club_key {club.club_key!r} appears more than once in club master")
                logger.warning("Duplicate club_key %s in club master; later row wins", club.club_key)
            seen.add(club.club_key)
        clubs.append(club)
    return clubs


def load_club_master(path: Path, *, strict: bool = False) -> List[ClubMasterRow]:
    """Load the club master; it is required, so a missing file raises."""

    clubs = club_master_from_rows(read_table(path), strict=strict)
    logger.debug("Loaded %d club master rows from %s", len(clubs), path)
    return clubs


def league_master_from_rows(rows: Iterable[Mapping[str, str]]) -> List[LeagueMasterRow]:
    leagues: List[LeagueMasterRow] = []
    for row in rows:
        raw_rank = (row.get("sort_rank") or "").strip()
        try:
            sort_rank = int(float(raw_rank)) if raw_rank else 999
        except ValueError:
            sort_rank = 999
        leagues.append(
            LeagueMasterRow(
                league=row.get("league", ""),
                league_key=row.get("league_key", ""),
                league_display_ja=row.get("league_display_ja", ""),
                league_display_en=row.get("league_display_en", ""),
                sort_rank=sort_rank,
                is_public=(row.get("is_public") or "").strip().lower() == "true",
                notes=row.get("notes", ""),
            )
        )
    return leagues


def load_league_master(path: Path) -> List[LeagueMasterRow]:
    return league_master_from_rows(read_table(path))


def public_leagues(leagues: Sequence[LeagueMasterRow]) -> List[LeagueMasterRow]:
    """Leagues flagged public, ordered by ``sort_rank`` then key."""

    return sorted((lg for lg in leagues if lg.is_public), key=lambda lg: (lg.sort_rank, lg.league_key))


class ClubIndex:
    """Exact ``club_key`` lookup over the club master."""

    def __init__(self, clubs: Iterable[ClubMasterRow], *, strict: bool = False) -> None:
        self._by_key: Dict[str, ClubMasterRow] = {}
        for club in clubs:
            key = club.club_key.strip()
            if not key:
                continue
            if strict and key in self._by_key:
                raise DuplicateKeyError(f"club_key {key!r} appears more than once")
            self._by_key[key] = club

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    def get(self, key: str) -> Optional[ClubMasterRow]:
        return self._by_key.get(normalize_text(key))

    def display(self, key_or_raw: str) -> Tuple[str, str, bool]:
        """Return ``(ja, en, resolved)``; unknown values display as their raw text."""

        raw = normalize_text(key_or_raw)
        if not raw:
            return "", "", False
        club = self._by_key.get(raw)
        if club is None:
            return raw, raw, False
        ja = normalize_text(club.club_display_ja) or raw
        en = normalize_text(club.club_display_en) or raw
        return ja, en, True


@dataclass(frozen=True)
class ClubResolution:
    league_key: str
    club_key: str
    club_display_ja: str
    league_display: str


@dataclass(frozen=True)
class _Candidate:
    club: ClubMasterRow
    league: str
    names: Tuple[str, ...]


def _candidate_names(club: ClubMasterRow) -> Tuple[str, ...]:
    names = [club.club_display_en, club.club_display_ja, *split_aliases(club.aliases)]
    for legacy in (club.club_alias_en, club.club_alias_ja):
        names.extend(part.strip() for part in legacy.split("|") if part.strip())
    normalized = (normalize_key_text(name) for name in names)
    return tuple(name for name in normalized if name)


class ClubResolver:
    """Resolve ``(league display, club display)`` pairs against the club master.

    Rows whose league display equals the input league are searched first; when
    no row carries that league label the whole master is searched, so league
    typos in source sheets still resolve. A club matches when one of its names
    or aliases equals, contains or is contained in the input club text. Pairs
    that cannot be resolved are collected in :attr:`unresolved`.
    """

    def __init__(self, clubs: Iterable[ClubMasterRow]) -> None:
        self._candidates = [
            _Candidate(club=club, league=normalize_key_text(club.league_display), names=_candidate_names(club))
            for club in clubs
        ]
        self._unresolved: Dict[Tuple[str, str], None] = {}

    @property
    def unresolved(self) -> List[Tuple[str, str]]:
        return list(self._unresolved)

    def resolve(self, league_text: str, club_text: str) -> Optional[ClubResolution]:
        league = normalize_key_text(league_text)
        club = normalize_key_text(club_text)

        hit: Optional[ClubMasterRow] = None
        if club:
            scoped = [cand for cand in self._candidates if cand.league == league]
            for cand in scoped or self._candidates:
                if any(name == club or club in name or name in club for name in cand.names):
                    hit = cand.club
                    break

        if hit is None:
            pair = (normalize_text(league_text), normalize_text(club_text))
            if pair not in self._unresolved:
                logger.warning("Unresolved club %s / %s", pair[0], pair[1])
            self._unresolved[pair] = None
            return None

        return ClubResolution(
            league_key=hit.league_key,
            club_key=hit.club_key,
            club_display_ja=hit.club_display_ja,
            league_display=hit.league_display,
        )


__all__ = [
    "ClubIndex",
    "ClubResolution",
    "ClubResolver",
    "club_master_from_rows",
    "league_master_from_rows",
    "load_club_master",
    "load_league_master",
    "public_leagues",
    "split_aliases",
]
