from datetime import date, datetime

import pytest

from footydb.ingest.normalize import (
    calc_age,
    cell_text,
    clean_player_name,
    date_sort_key,
    normalize_date,
    normalize_height,
    normalize_key_text,
    normalize_position,
    normalize_shirt_no,
    normalize_text,
    normalize_window,
    parse_int_or_none,
    season_short,
    season_to_snapshot_date,
    to_year_month,
)


def test_normalize_text_unifies_space_variants():
    assert normalize_text("\u3000Kaoru\u00a0 Mitoma  ") == "Kaoru Mitoma"
    assert normalize_text(None) == ""


def test_normalize_key_text_casefolds_and_drops_zero_width():
    assert normalize_key_text("Ｒｅａｌ\u200b  Madrid") == "real madrid"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1995-09-15", "1995-09-15"),
        ("1995/9/5", "1995-09-05"),
        ("1995.09.15", "1995-09-15"),
        ("1995/09/15 (29)", "1995-09-15"),
        ("1995-09-15T00:00:00Z", "1995-09-15"),
        ("  2001-1-2  ", "2001-01-02"),
        ("1995/13/01", ""),
        ("2023-02-31", ""),
        ("2023/2/29", ""),
        ("2024/2/29", "2024-02-29"),
        ("15/09/1995", ""),
        ("unknown", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


def test_normalize_date_is_idempotent():
    for raw in ("1995/9/5", "1995.09.15 (29)", "garbage"):
        once = normalize_date(raw)
        assert normalize_date(once) == once


def test_normalize_date_accepts_workbook_cells():
    assert normalize_date(datetime(1997, 5, 20, 0, 0)) == "1997-05-20"
    assert normalize_date(date(1997, 5, 20)) == "1997-05-20"
    assert normalize_date(35570) == "1997-05-20"
    assert normalize_date(183) == ""


def test_date_sort_key():
    assert date_sort_key("2025/3/1") == "20250301"
    assert date_sort_key("snapshot 2025年3月1日") == "20250301"
    assert date_sort_key("") == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,83m", "183"),
        ("1.83 m", "183"),
        ("183cm", "183"),
        ("183 cm", "183"),
        (1.83, "183"),
        (183, "183"),
        ("-", ""),
        ("tall", ""),
        ("", ""),
    ],
)
def test_normalize_height(raw, expected):
    assert normalize_height(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ゴールキーパー", "GK"),
        ("Goalkeeper", "GK"),
        ("センターバック", "DF"),
        ("右サイドバック", "DF"),
        ("Centre-Back", "DF"),
        ("守備的ミッドフィールダー", "MF"),
        ("Attacking Midfield", "MF"),
        ("左ウイング", "FW"),
        ("Right Winger", "FW"),
        ("センターフォワード", "FW"),
        ("右ウイングバック", "DF"),
        ("mf", "MF"),
        ("coach", ""),
        ("", ""),
    ],
)
def test_normalize_position(raw, expected):
    assert normalize_position(raw) == expected


def test_small_field_normalizers():
    assert normalize_window("Winter") == "winter"
    assert normalize_window("") == "summer"
    assert normalize_window("spring") == "summer"
    assert parse_int_or_none("183") == 183
    assert parse_int_or_none("183.0") == 183
    assert parse_int_or_none("n/a") is None
    assert parse_int_or_none("nan") is None
    assert normalize_shirt_no("-") == ""
    assert normalize_shirt_no(" 10 ") == "10"
    assert cell_text(7.0) == "7"


def test_season_helpers():
    assert season_to_snapshot_date("2024-25") == "2025-02-01"
    assert season_to_snapshot_date("1999-00") == "2000-02-01"
    assert season_to_snapshot_date("2024") == ""
    assert season_short("2025-26") == "25-26"
    assert season_short("2025-2026") == "25-26"
    assert season_short("Apertura") == "Apertura"
    assert to_year_month("2024/3/9") == "2024-03"


def test_calc_age():
    assert calc_age("2000-06-15", "2024-06-14") == 23
    assert calc_age("2000-06-15", "2024-06-15") == 24
    assert calc_age("", "2024-01-01") is None
    assert calc_age("2023-02-31", "2024-01-01") is None
    assert calc_age("1990-01-01", "2023-02-31") == calc_age("1990-01-01")


def test_clean_player_name_strips_disambiguation_suffix():
    assert clean_player_name("Daiki Suzuki (1998年生のサッカー選手)") == "Daiki Suzuki"
    assert clean_player_name("鈴木大輝（1998年生まれのサッカー選手）") == "鈴木大輝"
    assert clean_player_name("Plain Name") == "Plain Name"
