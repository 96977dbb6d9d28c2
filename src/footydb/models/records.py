"""Canonical record models shared across ingestion, resolution and stats layers."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class DuplicateKeyError(ValueError):
    """Raised in strict mode when a master table or store repeats a key."""


ClubWindow = Literal["summer", "winter"]
FailReason = Literal["notfound", "ambiguous", "no_ja", "api_error"]
FAIL_REASONS: tuple[str, ...] = ("notfound", "ambiguous", "no_ja", "api_error")


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class MatchEvent(_Record):
    """One row of the match-events table."""

    competition: str
    edition: str
    match_id: str = ""
    event_id: str = ""
    event_type: str = ""
    team: str = ""
    player: str = ""
    assist: str = ""
    minute: str = ""
    period: str = ""
    round: str = ""
    vs: str = ""
    note: str = ""


class ClubMasterRow(_Record):
    club_key: str
    league_key: str
    league_display: str = ""
    club_display_ja: str = ""
    club_display_en: str = ""
    sort_ja: str = ""
    aliases: str = ""
    club_alias_en: str = ""
    club_alias_ja: str = ""
    status: str = "active"
    notes: str = ""


class LeagueMasterRow(_Record):
    league: str = ""
    league_key: str
    league_display_ja: str = ""
    league_display_en: str = ""
    sort_rank: int = 999
    is_public: bool = False
    notes: str = ""


class ClubSquadRow(_Record):
    """A player on a club roster snapshot."""

    season: str = ""
    window: ClubWindow = "summer"
    league: str = ""
    club: str = ""
    league_key: str
    club_key: str
    club_shirt_no: str = ""
    position_primary: str = ""
    is_star: str = ""
    name_en: str = ""
    birth_date: str = ""
    height_cm: Optional[int] = Field(default=None, ge=0)
    snapshot_date: str = ""
    name_ja: str = ""
    nationality: str = ""
    foot: str = ""
    join_date: str = ""
    prev_club: str = ""
    contract_until: str = ""
    source: str = ""
    notes: str = ""


class CallupRow(_Record):
    """A player on a national-team call-up snapshot."""

    competition: str = ""
    edition: str = ""
    confederation: str = ""
    confederation_bucket: str = ""
    country: str
    nt_shirt_no: str = ""
    position_primary: str = ""
    is_star: str = ""
    name_en: str
    birth_date: str = ""
    height_cm: str = ""
    current_club: str = ""
    snapshot_date: str = ""
    name_ja: str = ""
    national_debut: str = ""
    source: str = ""
    notes: str = ""


class TransferEvent(_Record):
    """A normalized transfer with club references resolved against the club master."""

    season: str = ""
    window: str = ""
    date_raw: str = ""
    date_iso: str = ""
    player_name: str
    from_club_key: str = ""
    to_club_key: str = ""
    move_type: str = "transfer"
    note: str = ""
    importance: str = "C"
    from_club_display_ja: str = ""
    from_club_display_en: str = ""
    to_club_display_ja: str = ""
    to_club_display_en: str = ""
    from_club_resolved: bool = False
    to_club_resolved: bool = False

    def club_display(self, which: Literal["from", "to"], prefer: Literal["ja", "en"] = "ja") -> str:
        if which == "from":
            return self.from_club_display_en if prefer == "en" else self.from_club_display_ja
        return self.to_club_display_en if prefer == "en" else self.to_club_display_ja


class AwardRow(_Record):
    competition: str = ""
    edition: str = ""
    award_key: str = ""
    award_name: str = ""
    rank: str = ""
    player: str = ""
    team: str = ""
    note: str = ""


class NameMapEntry(_Record):
    """A verified (name, birth date) -> Japanese display name mapping."""

    key: str = Field(..., min_length=3)
    name_en: str = Field(..., min_length=1)
    birth_date: str = Field(..., min_length=10, max_length=10)
    name_ja: str = Field(..., min_length=1)
    source: str = ""
    updated_at: str = ""


class LookupFailure(_Record):
    key: str = Field(..., min_length=3)
    reason: FailReason
    checked_at: str
