from pathlib import Path

import pytest

from footydb.ingest.tables import (
    awards_from_rows,
    callups_from_rows,
    club_squads_from_rows,
    load_match_events,
    load_transfers,
    match_events_from_rows,
    transfers_from_rows,
)
from footydb.ingest.tabular import MissingDataFileError
from footydb.models import ClubMasterRow
from footydb.resolve import ClubIndex


@pytest.fixture
def index():
    return ClubIndex(
        [
            ClubMasterRow(club_key="ars", league_key="eng1", club_display_ja="アーセナル", club_display_en="Arsenal"),
            ClubMasterRow(club_key="aja", league_key="ned1", club_display_ja="アヤックス", club_display_en="Ajax"),
        ]
    )


def test_match_events_upper_case_event_type():
    [event] = match_events_from_rows(
        [{"competition": "WC", "edition": "2022", "event_type": "goal", "player": " Messi ", "team": "ARG"}]
    )

    assert event.event_type == "GOAL"
    assert event.player == "Messi"
    assert event.assist == ""


def test_match_events_file_is_required(tmp_path: Path):
    with pytest.raises(MissingDataFileError):
        load_match_events(tmp_path / "match_events.csv")


def test_club_squads_drop_rows_without_keys(caplog):
    rows = [
        {"league_key": "eng1", "club_key": "ars", "name_en": "Saka", "height_cm": "178", "window": "Winter"},
        {"league_key": "eng1", "club_key": "", "name_en": "Nobody"},
        {"league_key": "eng1", "club_key": "ars", "name_en": "Odd", "height_cm": "-5", "window": "junk"},
    ]

    with caplog.at_level("WARNING"):
        squads = club_squads_from_rows(rows)

    assert [row.name_en for row in squads] == ["Saka", "Odd"]
    assert squads[0].height_cm == 178
    assert squads[0].window == "winter"
    assert squads[1].height_cm is None
    assert squads[1].window == "summer"
    assert "Dropped 1 club squad rows" in caplog.text


def test_callups_require_country_and_name():
    rows = [
        {"country": "Japan", "name_en": "Kaoru Mitoma", "edition": "2026"},
        {"country": "", "name_en": "Stateless"},
        {"country": "Japan", "name_en": ""},
    ]

    assert [row.name_en for row in callups_from_rows(rows)] == ["Kaoru Mitoma"]


def test_transfers_resolve_clubs_and_sort(index):
    rows = [
        {"season": "2024-25", "window": "summer", "date": "2024/7/1", "player_name": "C late", "importance": "C"},
        {
            "season": "2024-25",
            "window": "summer",
            "date": "2024/8/30",
            "player_name": "A newest",
            "from_club_key": "aja",
            "to_club_key": "ars",
            "importance": "A",
        },
        {"season": "2024-25", "window": "summer", "date": "", "player_name": "A undated", "importance": "A"},
        {"season": "2024-25", "window": "summer", "date": "2024/6/1", "player_name": "A older", "importance": "a"},
        {
            "season": "2024-25",
            "window": "summer",
            "date": "2024-07-15",
            "player_name": "Unknown club",
            "from_club_key": "Some Village FC",
        },
        {"season": "2023-24", "window": "winter", "player_name": "Other season"},
        {"season": "2024-25", "window": "summer", "player_name": ""},
    ]

    events = transfers_from_rows(rows, index, season="2024-25", window="Summer")

    assert [event.player_name for event in events] == ["A newest", "A older", "A undated", "Unknown club", "C late"]
    newest = events[0]
    assert newest.date_iso == "2024-08-30"
    assert newest.club_display("from", "en") == "Ajax"
    assert newest.club_display("to") == "アーセナル"
    assert newest.to_club_resolved
    unknown = events[3]
    assert unknown.club_display("from") == "Some Village FC"
    assert not unknown.from_club_resolved
    assert unknown.move_type == "transfer"
    assert unknown.importance == "C"


def test_missing_transfers_file_is_empty(tmp_path: Path, index):
    assert load_transfers(tmp_path / "transfers.csv", index) == []


def test_awards_are_trimmed():
    [award] = awards_from_rows([{"competition": "WC", "edition": "2022", "award_key": " golden_ball ", "rank": "1"}])

    assert award.award_key == "golden_ball"
    assert award.player == ""
