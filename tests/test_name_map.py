from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from footydb.ingest.tabular import BOM, read_table, write_csv
from footydb.models import DuplicateKeyError
from footydb.names.keys import candidate_keys, fold_diacritics, is_keyable, key_of, loosen_name, norm_name
from footydb.persistence import (
    FAILURE_FIELDS,
    NAME_MAP_FIELDS,
    FailureCache,
    NameMapStore,
    format_timestamp,
    parse_timestamp,
)


def test_name_variants():
    assert norm_name(" O.  Baumann ") == "O Baumann"
    assert norm_name("N’Golo Kanté") == "N'Golo Kanté"
    assert norm_name("Jean–Philippe") == "Jean-Philippe"
    assert fold_diacritics("Ömer Kékez") == "Omer Kekez"
    assert loosen_name("N'Golo Kanté-Smith") == "N Golo Kanté Smith"


def test_candidate_keys_order_and_keyability():
    keys = candidate_keys("O. Baumann", "1990/1/1")

    assert keys[:2] == ["O. Baumann|1990-01-01", "O Baumann|1990-01-01"]
    assert "o baumann|1990-01-01" in keys
    assert len(keys) == len(set(keys))
    assert candidate_keys("", "1990-01-01") == []
    assert candidate_keys("Someone", "unknown") == []
    assert not is_keyable("Someone", "")
    assert is_keyable("Someone", "1990/1/1")


def test_alias_resolution_is_deterministic():
    store = NameMapStore()
    store.upsert("O. Baumann", "1990-01-01", "バウマン")

    for spelling in ("O. Baumann", "O Baumann", "O. BAUMANN", "o baumann"):
        assert store.name_ja_for(spelling, "1990-01-01") == "バウマン"
    assert store.name_ja_for("O. Baumann", "1990-01-02") == ""
    [entry] = store.entries()
    assert entry.key == "O Baumann|1990-01-01"
    assert entry.source == "wikidata"


def test_diacritic_and_loosened_spellings_resolve():
    store = NameMapStore()
    store.upsert("N'Golo Kanté", "1991-03-29", "カンテ")

    assert store.name_ja_for("N'Golo Kante", "1991-03-29") == "カンテ"
    assert store.name_ja_for("N Golo Kanté", "1991-03-29") == "カンテ"
    assert store.name_ja_for("N’Golo Kanté", "1991-03-29") == "カンテ"


def test_upsert_last_write_wins():
    store = NameMapStore()
    store.upsert("Kaoru Mitoma", "1997-05-20", "三苫")
    store.upsert("Kaoru Mitoma", "1997-05-20", "三笘薫")

    assert len(store) == 1
    assert store.name_ja_for("Kaoru Mitoma", "1997-05-20") == "三笘薫"


def test_load_skips_incomplete_rows_and_registers_legacy_key(tmp_path: Path):
    path = tmp_path / "name_map.csv"
    write_csv(
        path,
        [
            {"key": "Legacy Spelling|1997-05-20", "name_en": "Kaoru Mitoma", "birth_date": "1997/5/20", "name_ja": "三笘薫"},
            {"key": "", "name_en": "No Birth", "birth_date": "", "name_ja": "なし"},
            {"key": "", "name_en": "No Name Ja", "birth_date": "2000-01-01", "name_ja": ""},
        ],
        NAME_MAP_FIELDS,
    )

    store = NameMapStore.load(path)

    assert len(store) == 1
    assert store.name_ja_for("Legacy Spelling", "1997-05-20") == "三笘薫"
    assert store.lookup("Kaoru Mitoma", "1997-05-20").birth_date == "1997-05-20"


def test_load_duplicate_keys(tmp_path: Path):
    path = tmp_path / "name_map.csv"
    rows = [
        {"key": "", "name_en": "A B", "birth_date": "2000-01-01", "name_ja": "一"},
        {"key": "", "name_en": "A B", "birth_date": "2000-01-01", "name_ja": "二"},
    ]
    write_csv(path, rows, NAME_MAP_FIELDS)

    assert NameMapStore.load(path).name_ja_for("A B", "2000-01-01") == "二"
    with pytest.raises(DuplicateKeyError):
        NameMapStore.load(path, strict=True)


def test_missing_store_files_are_created_with_header(tmp_path: Path):
    store = NameMapStore.load(tmp_path / "name_map.csv")
    cache = FailureCache.load(tmp_path / "name_map_fail.csv")

    assert len(store) == 0 and len(cache) == 0
    assert (tmp_path / "name_map.csv").read_bytes().decode("utf-8") == BOM + ",".join(NAME_MAP_FIELDS) + "\r\n"
    assert (tmp_path / "name_map_fail.csv").read_bytes().decode("utf-8") == BOM + ",".join(FAILURE_FIELDS) + "\r\n"


def test_save_rewrites_sorted_by_key(tmp_path: Path):
    path = tmp_path / "name_map.csv"
    store = NameMapStore.load(path)
    store.upsert("Zed", "2000-01-01", "ゼッド", updated_at="2025-01-01")
    store.upsert("Abe", "2000-01-01", "アベ", updated_at="2025-01-01")

    store.save()

    assert [row["key"] for row in read_table(path)] == ["Abe|2000-01-01", "Zed|2000-01-01"]
    assert NameMapStore.load(path).name_ja_for("ABE", "2000/1/1") == "アベ"


def test_timestamps():
    moment = datetime(2025, 3, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)

    assert format_timestamp(moment) == "2025-03-01T12:30:15.250Z"
    assert parse_timestamp("2025-03-01T12:30:15.250Z") == moment
    assert parse_timestamp("2025-03-01T12:30:15") == moment.replace(microsecond=0)
    assert parse_timestamp("yesterday") is None


def test_failure_cache_suppression():
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    cache = FailureCache(cooldown=timedelta(days=30))
    cache.record("recent|2000-01-01", "notfound", checked_at=now - timedelta(days=3))
    cache.record("old|2000-01-01", "ambiguous", checked_at=now - timedelta(days=31))
    cache.record("api|2000-01-01", "api_error", checked_at=now)

    assert cache.should_skip("recent|2000-01-01", now=now)
    assert not cache.should_skip("old|2000-01-01", now=now)
    assert not cache.should_skip("api|2000-01-01", now=now)
    assert not cache.should_skip("never|2000-01-01", now=now)


def test_failure_cache_unparseable_timestamp_never_suppresses(tmp_path: Path):
    path = tmp_path / "name_map_fail.csv"
    write_csv(
        path,
        [
            {"key": "bad|2000-01-01", "reason": "notfound", "checked_at": "not a date"},
            {"key": "odd|2000-01-01", "reason": "mystery", "checked_at": "2025-01-01T00:00:00.000Z"},
        ],
        FAILURE_FIELDS,
    )

    cache = FailureCache.load(path)

    assert "bad|2000-01-01" in cache
    assert "odd|2000-01-01" not in cache
    assert not cache.should_skip("bad|2000-01-01")


def test_failure_cache_round_trip(tmp_path: Path):
    path = tmp_path / "name_map_fail.csv"
    cache = FailureCache.load(path)
    checked = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    cache.record("b|2000-01-01", "no_ja", checked_at=checked)
    cache.record("a|2000-01-01", "notfound", checked_at=checked)
    cache.save()

    assert read_table(path) == [
        {"key": "a|2000-01-01", "reason": "notfound", "checked_at": "2025-01-02T03:04:05.000Z"},
        {"key": "b|2000-01-01", "reason": "no_ja", "checked_at": "2025-01-02T03:04:05.000Z"},
    ]
    assert key_of("a", "2000-01-01") == "a|2000-01-01"
