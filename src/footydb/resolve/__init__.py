"""Cross-table key resolution."""

from .clubs import (
    ClubIndex,
    ClubResolution,
    ClubResolver,
    club_master_from_rows,
    league_master_from_rows,
    load_club_master,
    load_league_master,
    public_leagues,
    split_aliases,
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
