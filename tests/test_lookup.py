from __future__ import annotations

import asyncio
from typing import Dict, List

import httpx
import pytest

from footydb.names.lookup import (
    LookupKey,
    LookupResult,
    LookupTransientError,
    RetryPolicy,
    WikidataLookup,
    build_client,
    chunked,
    fetch_json,
    lookup_batch,
    search_spellings,
)


FAST = RetryPolicy(max_attempts=4, base_delay=0.0, multiplier=1.0, cap=0.0)


async def _no_sleep(_seconds: float) -> None:
    return None


def _entity(birth: str = "", label_ja: str = "", jawiki: str = "") -> Dict:
    entity: Dict = {"labels": {}, "claims": {}, "sitelinks": {}}
    if birth:
        entity["claims"]["P569"] = [{"mainsnak": {"datavalue": {"value": {"time": f"+{birth}T00:00:00Z"}}}}]
    if label_ja:
        entity["labels"]["ja"] = {"language": "ja", "value": label_ja}
    if jawiki:
        entity["sitelinks"]["jawiki"] = {"site": "jawiki", "title": jawiki}
    return entity


def _wikidata(entities: Dict[str, Dict], calls: List[str] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        action = request.url.params["action"]
        if calls is not None:
            calls.append(action)
        if action == "wbsearchentities":
            return httpx.Response(200, json={"search": [{"id": entity_id} for entity_id in entities]})
        ids = request.url.params["ids"].split("|")
        return httpx.Response(200, json={"entities": {entity_id: entities[entity_id] for entity_id in ids}})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _lookup(client: httpx.AsyncClient) -> WikidataLookup:
    return WikidataLookup(client, policy=FAST, sleep=_no_sleep)


def test_retry_policy_delays_are_capped():
    policy = RetryPolicy()

    assert policy.delay_for(0) == pytest.approx(0.8)
    assert policy.delay_for(1) == pytest.approx(0.8 * 1.7)
    assert policy.delay_for(10) == 8.0


def test_search_spellings_cover_folded_and_loosened_forms():
    assert search_spellings("N'Golo Kanté") == ["N'Golo Kanté", "N'Golo Kante", "N Golo Kanté", "N Golo Kante"]
    assert search_spellings("Plain Name") == ["Plain Name"]


def test_build_client_sets_identifying_headers():
    client = build_client(user_agent="footydb-tests/1.0", timeout=5.0)

    assert client.headers["User-Agent"] == "footydb-tests/1.0"
    assert client.timeout.read == 5.0


@pytest.mark.anyio
async def test_exact_birth_date_match_prefers_japanese_label():
    entities = {
        "Q1": _entity("1997-05-20", label_ja="三笘薫", jawiki="三笘薫 (サッカー選手)"),
        "Q2": _entity("1960-01-01", label_ja="別人"),
    }
    async with _wikidata(entities) as client:
        result = await _lookup(client).lookup("Kaoru Mitoma", "1997-05-20")

    assert result == LookupResult.found("三笘薫")
    assert result.ok


@pytest.mark.anyio
async def test_jawiki_title_used_without_label():
    async with _wikidata({"Q1": _entity("1997-05-20", jawiki="三笘薫")}) as client:
        result = await _lookup(client).lookup("Kaoru Mitoma", "1997-05-20")

    assert result.name_ja == "三笘薫"


@pytest.mark.anyio
async def test_single_match_without_japanese_name_is_no_ja():
    async with _wikidata({"Q1": _entity("1997-05-20")}) as client:
        result = await _lookup(client).lookup("Kaoru Mitoma", "1997-05-20")

    assert result == LookupResult.failed("no_ja")
    assert not result.ok


@pytest.mark.anyio
async def test_several_exact_matches_are_ambiguous():
    entities = {"Q1": _entity("1990-01-01", label_ja="一"), "Q2": _entity("1990-01-01", label_ja="二")}
    async with _wikidata(entities) as client:
        result = await _lookup(client).lookup("John Smith", "1990-01-01")

    assert result.reason == "ambiguous"


@pytest.mark.anyio
async def test_unique_same_year_entity_is_accepted():
    entities = {"Q1": _entity("1990-06-30", label_ja="スミス"), "Q2": _entity("1991-01-01", label_ja="別人")}
    async with _wikidata(entities) as client:
        result = await _lookup(client).lookup("John Smith", "1990-01-01")

    assert result.name_ja == "スミス"


@pytest.mark.anyio
async def test_no_search_hits_is_notfound():
    calls: List[str] = []
    async with _wikidata({}, calls) as client:
        result = await _lookup(client).lookup("N'Golo Kanté", "1991-03-29")

    assert result.reason == "notfound"
    assert calls == ["wbsearchentities"] * 4


@pytest.mark.anyio
async def test_transient_status_is_retried():
    attempts = {"search": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["action"] == "wbsearchentities":
            attempts["search"] += 1
            if attempts["search"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"search": [{"id": "Q1"}]})
        return httpx.Response(200, json={"entities": {"Q1": _entity("1990-01-01", label_ja="成功")}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await _lookup(client).lookup("Retry Me", "1990-01-01")

    assert result.name_ja == "成功"
    assert attempts["search"] == 3


@pytest.mark.anyio
async def test_exhausted_retries_become_api_error():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(429)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(LookupTransientError):
            await fetch_json(client, "https://example.test/api", {}, policy=FAST, sleep=_no_sleep)
        assert calls["count"] == 4

        calls["count"] = 0
        result = await _lookup(client).lookup("Busy Server", "1990-01-01")

    assert result.reason == "api_error"
    assert calls["count"] == 8


@pytest.mark.anyio
async def test_timeouts_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(LookupTransientError):
            await fetch_json(client, "https://example.test/api", {}, policy=FAST, sleep=_no_sleep)


@pytest.mark.anyio
async def test_client_errors_are_not_retried():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_json(client, "https://example.test/api", {}, policy=FAST, sleep=_no_sleep)

    assert calls["count"] == 1


class _RecordingLookup:
    def __init__(self) -> None:
        self.in_flight = 0
        self.peak = 0

    async def lookup(self, name_en: str, birth_date: str) -> LookupResult:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.001)
        self.in_flight -= 1
        if name_en.startswith("boom"):
            raise RuntimeError("unexpected")
        return LookupResult.found(name_en.upper())


@pytest.mark.anyio
async def test_lookup_batch_keeps_order_and_bounds_concurrency():
    keys = [LookupKey(f"player {index}", "2000-01-01") for index in range(12)]
    keys.append(LookupKey("boom", "2000-01-01"))
    lookup = _RecordingLookup()

    results = await lookup_batch(lookup, keys, concurrency=3, delay=0, sleep=_no_sleep)

    assert [result.name_ja for result in results[:12]] == [f"PLAYER {index}" for index in range(12)]
    assert results[12].reason == "api_error"
    assert 1 < lookup.peak <= 3


@pytest.mark.anyio
async def test_lookup_batch_clamps_concurrency():
    lookup = _RecordingLookup()
    keys = [LookupKey(f"p{index}", "2000-01-01") for index in range(30)]

    await lookup_batch(lookup, keys, concurrency=50, delay=0, sleep=_no_sleep)

    assert lookup.peak <= 10


def test_chunked():
    keys = [LookupKey(str(index), "2000-01-01") for index in range(5)]

    assert [len(chunk) for chunk in chunked(keys, 2)] == [2, 2, 1]


def test_blank_japanese_name_is_no_ja():
    assert LookupResult.found("  ") == LookupResult.failed("no_ja")
    assert LookupResult.found(" 三笘薫 ").name_ja == "三笘薫"
    assert not LookupResult(name_ja=" ").ok


@pytest.mark.anyio
async def test_blank_label_falls_back_to_jawiki_title():
    async with _wikidata({"Q1": _entity("1997-05-20", label_ja=" ", jawiki="三笘薫")}) as client:
        result = await _lookup(client).lookup("Kaoru Mitoma", "1997-05-20")

    assert result.name_ja == "三笘薫"
