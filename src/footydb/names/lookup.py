"""Remote verification of Japanese player names.

The enrichment batch only depends on the :class:`NameLookup` protocol. The
bundled implementation queries the Wikidata API over a shared
``httpx.AsyncClient``; :func:`lookup_batch` runs a bounded pool of workers over
a list of keys and returns one result per key, in input order.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

import httpx

from footydb.models.records import FailReason
from footydb.names.keys import fold_diacritics, key_of, loosen_name


logger = logging.getLogger(__name__)

WIKIDATA_API_URL = "https://www.wikidata.org/w/api.php"
DEFAULT_USER_AGENT = "footydb-name-ja-enricher/2.5 (personal project)"
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

Sleep = Callable[[float], Awaitable[Any]]

_WIKIDATA_TIME_RE = re.compile(r"^\+?(\d{4}-\d{2}-\d{2})")


class LookupTransientError(RuntimeError):
    """A request kept failing with timeouts, transport errors or 429/5xx answers."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 0.8
    multiplier: float = 1.7
    cap: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed."""

        return min(self.base_delay * (self.multiplier ** attempt), self.cap)


@dataclass(frozen=True)
class LookupResult:
    name_ja: str = ""
    reason: Optional[FailReason] = None

    @property
    def ok(self) -> bool:
        return self.reason is None and bool(self.name_ja.strip())

    @classmethod
    def found(cls, name_ja: str) -> "LookupResult":
        """A verified name; a blank label counts as ``no_ja``."""

        name_ja = (name_ja or "").strip()
        if not name_ja:
            return cls(reason="no_ja")
        return cls(name_ja=name_ja)

    @classmethod
    def failed(cls, reason: FailReason) -> "LookupResult":
        return cls(reason=reason)


@dataclass(frozen=True)
class LookupKey:
    name_en: str
    birth_date: str

    @property
    def key(self) -> str:
        return key_of(self.name_en, self.birth_date)


class NameLookup(Protocol):
    async def lookup(self, name_en: str, birth_date: str) -> LookupResult: ...


def build_client(*, user_agent: str = DEFAULT_USER_AGENT, timeout: float = 15.0, **kwargs: Any) -> httpx.AsyncClient:
    headers = {"User-Agent": user_agent, "Accept": "application/json"}
    return httpx.AsyncClient(headers=headers, timeout=timeout, **kwargs)


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    params: Dict[str, str],
    *,
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """GET ``url`` and decode JSON, retrying transient failures per ``policy``.

    Non-retryable HTTP errors (other 4xx) raise ``httpx.HTTPStatusError`` at once.
    """

    last_error: Optional[BaseException] = None
    for attempt in range(policy.max_attempts):
        try:
            response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            last_error = exc
        else:
            if response.status_code in RETRYABLE_STATUS:
                last_error = LookupTransientError(f"HTTP {response.status_code}")
            else:
                response.raise_for_status()
                try:
                    return response.json()
                except ValueError as exc:
                    last_error = exc

        if attempt + 1 < policy.max_attempts:
            delay = policy.delay_for(attempt)
            logger.debug("Request to %s failed (%s); retrying in %.2fs", url, last_error, delay)
            await sleep(delay)

    raise LookupTransientError(f"request to {url} failed after {policy.max_attempts} attempts") from last_error


def _birth_date_of(entity: Dict[str, Any]) -> str:
    try:
        time = entity["claims"]["P569"][0]["mainsnak"]["datavalue"]["value"]["time"]
    except (KeyError, IndexError, TypeError):
        return ""
    match = _WIKIDATA_TIME_RE.match(str(time))
    return match.group(1) if match else ""


def _japanese_name_of(entity: Dict[str, Any]) -> str:
    """Japanese label, or the jawiki article title when no label exists."""

    label = str(((entity.get("labels") or {}).get("ja") or {}).get("value") or "").strip()
    if label:
        return label
    return str(((entity.get("sitelinks") or {}).get("jawiki") or {}).get("title") or "").strip()


def search_spellings(name_en: str) -> List[str]:
    spellings: Dict[str, None] = {}
    loose = loosen_name(name_en)
    for candidate in (name_en, fold_diacritics(name_en), loose, fold_diacritics(loose)):
        if candidate:
            spellings.setdefault(candidate, None)
    return list(spellings)


class WikidataLookup:
    """Resolve ``(name_en, birth_date)`` to a Japanese display name via Wikidata.

    Each search spelling is tried in turn. Entities whose P569 birth date equals
    the requested date are matches: exactly one match yields its Japanese name
    (or ``no_ja``), several are ``ambiguous``. With no exact match, a unique
    same-birth-year entity that has a Japanese name is accepted. Any error ends
    the attempt as ``api_error``, and such an attempt is repeated once.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        policy: RetryPolicy = RetryPolicy(),
        api_url: str = WIKIDATA_API_URL,
        search_limit: int = 20,
        api_error_retry_delay: float = 0.6,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._policy = policy
        self._api_url = api_url
        self._search_limit = search_limit
        self._api_error_retry_delay = api_error_retry_delay
        self._sleep = sleep

    async def _get(self, params: Dict[str, str]) -> Any:
        return await fetch_json(
            self._client,
            self._api_url,
            {"format": "json", **params},
            policy=self._policy,
            sleep=self._sleep,
        )

    async def search_ids(self, query: str) -> List[str]:
        payload = await self._get(
            {
                "action": "wbsearchentities",
                "language": "en",
                "uselang": "en",
                "limit": str(self._search_limit),
                "search": query,
            }
        )
        ids = [str(item.get("id") or "") for item in (payload or {}).get("search") or []]
        return [entity_id for entity_id in ids if entity_id][: self._search_limit]

    async def get_entities(self, ids: Sequence[str]) -> Dict[str, Any]:
        payload = await self._get(
            {
                "action": "wbgetentities",
                "languages": "ja|en",
                "props": "labels|claims|sitelinks",
                "ids": "|".join(ids),
            }
        )
        return (payload or {}).get("entities") or {}

    async def _lookup_once(self, name_en: str, birth_date: str) -> LookupResult:
        birth_year = birth_date[:4]
        try:
            for query in search_spellings(name_en):
                ids = await self.search_ids(query)
                if not ids:
                    continue
                entities = await self.get_entities(ids)

                exact: List[str] = []
                same_year: List[str] = []
                for entity_id in ids:
                    entity = entities.get(entity_id)
                    if not entity:
                        continue
                    born = _birth_date_of(entity)
                    if not born:
                        continue
                    name_ja = _japanese_name_of(entity)
                    if born == birth_date:
                        exact.append(name_ja)
                    elif born[:4] == birth_year and name_ja:
                        same_year.append(name_ja)

                if len(exact) == 1:
                    return LookupResult.found(exact[0]) if exact[0] else LookupResult.failed("no_ja")
                if len(exact) > 1:
                    return LookupResult.failed("ambiguous")
                if len(same_year) == 1:
                    return LookupResult.found(same_year[0])
                if len(same_year) > 1:
                    return LookupResult.failed("ambiguous")
            return LookupResult.failed("notfound")
        except Exception as exc:
            logger.debug("Lookup for %s|%s failed: %s", name_en, birth_date, exc)
            return LookupResult.failed("api_error")

    async def lookup(self, name_en: str, birth_date: str) -> LookupResult:
        result = await self._lookup_once(name_en, birth_date)
        if result.reason == "api_error":
            await self._sleep(self._api_error_retry_delay)
            result = await self._lookup_once(name_en, birth_date)
        return result


async def lookup_batch(
    lookup: NameLookup,
    keys: Sequence[LookupKey],
    *,
    concurrency: int = 3,
    delay: float = 0.15,
    sleep: Sleep = asyncio.sleep,
    progress_offset: int = 0,
    progress_total: Optional[int] = None,
) -> List[LookupResult]:
    """Look up every key with at most ``concurrency`` (clamped to 1-10) requests in flight.

    Each worker writes into the slot of the key it handled; the caller merges
    the returned list after the whole batch has finished.
    """

    workers = max(1, min(10, concurrency))
    total = progress_total if progress_total is not None else len(keys)
    results: List[Optional[LookupResult]] = [None] * len(keys)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(keys):
            index = next_index
            next_index += 1
            item = keys[index]
            logger.debug("[lookup] %d/%d %s %s", progress_offset + index + 1, total, item.name_en, item.birth_date)
            try:
                results[index] = await lookup.lookup(item.name_en, item.birth_date)
            except Exception as exc:
                logger.warning("Lookup for %s raised %s; recording api_error", item.key, exc)
                results[index] = LookupResult.failed("api_error")
            if delay > 0:
                await sleep(delay)

    await asyncio.gather(*(worker() for _ in range(workers)))
    return [result or LookupResult.failed("api_error") for result in results]


def chunked(items: Sequence[LookupKey], size: int) -> Iterable[Sequence[LookupKey]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


__all__ = [
    "DEFAULT_USER_AGENT",
    "LookupKey",
    "LookupResult",
    "LookupTransientError",
    "NameLookup",
    "RetryPolicy",
    "WikidataLookup",
    "build_client",
    "chunked",
    "fetch_json",
    "lookup_batch",
    "search_spellings",
]
