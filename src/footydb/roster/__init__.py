"""Roster snapshot selection and ordering."""

from .snapshots import (
    HistoryEntry,
    Representation,
    bucket_type,
    history_for,
    latest_callups,
    latest_club_squads,
    latest_snapshot,
    representative_countries,
    representative_history,
    sort_club_roster,
    sort_for_roster,
)

__all__ = [
    "HistoryEntry",
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
