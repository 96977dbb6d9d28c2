"""Typed records produced by the ingestion layer."""

from .records import (
    FAIL_REASONS,
    AwardRow,
    CallupRow,
    ClubMasterRow,
    ClubSquadRow,
    DuplicateKeyError,
    LeagueMasterRow,
    LookupFailure,
    MatchEvent,
    NameMapEntry,
    TransferEvent,
)

__all__ = [
    "FAIL_REASONS",
    "AwardRow",
    "CallupRow",
    "ClubMasterRow",
    "ClubSquadRow",
    "DuplicateKeyError",
    "LeagueMasterRow",
    "LookupFailure",
    "MatchEvent",
    "NameMapEntry",
    "TransferEvent",
]
