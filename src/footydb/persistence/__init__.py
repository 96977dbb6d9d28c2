"""Durable state for name enrichment: the verified name map and the lookup failure cache.

Both live in flat CSV files that are read wholesale at the start of a run and
rewritten in full (sorted by key) at the end.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional

from footydb.ingest.normalize import normalize_date
from footydb.ingest.tabular import read_table, write_csv
from footydb.models import FAIL_REASONS, DuplicateKeyError, LookupFailure, NameMapEntry
from footydb.names.keys import candidate_keys, key_of, norm_name


logger = logging.getLogger(__name__)

NAME_MAP_FIELDS = ("key", "name_en", "birth_date", "name_ja", "source", "updated_at")
FAILURE_FIELDS = ("key", "reason", "checked_at")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: str) -> Optional[datetime]:
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _ensure_file(path: Path, fieldnames: tuple[str, ...]) -> None:
    if not path.exists():
        logger.info("Creating empty %s", path)
        write_csv(path, [], fieldnames)


class NameMapStore:
    """Verified ``(name_en, birth_date) -> name_ja`` entries plus their alias index.

    The canonical map holds one entry per canonical key and is what gets written
    back. The alias index maps every spelling variant of every known name to the
    same entry; later registrations overwrite earlier ones.
    """

    def __init__(self, path: Optional[Path] = None, *, strict: bool = False) -> None:
        self.path = Path(path) if path is not None else None
        self.strict = strict
        self._canonical: Dict[str, NameMapEntry] = {}
        self._index: Dict[str, NameMapEntry] = {}

    @classmethod
    def load(cls, path: Path, *, strict: bool = False) -> "NameMapStore":
        """Load ``path``, creating it with a header row when it does not exist."""

        store = cls(path, strict=strict)
        _ensure_file(store.path, NAME_MAP_FIELDS)
        skipped = 0
        for row in read_table(store.path):
            if store.add_row(row) is None:
                skipped += 1
        if skipped:
            logger.debug("Skipped %d incomplete name map rows in %s", skipped, path)
        logger.info("Loaded %d name map entries from %s", len(store), path)
        return store

    def __len__(self) -> int:
        return len(self._canonical)

    def __iter__(self) -> Iterator[NameMapEntry]:
        return iter(self.entries())

    def entries(self) -> List[NameMapEntry]:
        return [self._canonical[key] for key in sorted(self._canonical)]

    def add_row(self, row: Mapping[str, str]) -> Optional[NameMapEntry]:
        """Register a persisted row; incomplete rows are ignored and return ``None``."""

        name_en = (row.get("name_en") or "").strip()
        birth = normalize_date(row.get("birth_date") or "")
        name_ja = (row.get("name_ja") or "").strip()
        if not name_en or not birth or not name_ja:
            return None

        entry = NameMapEntry(
            key=key_of(name_en, birth),
            name_en=name_en,
            birth_date=birth,
            name_ja=name_ja,
            source=row.get("source") or "",
            updated_at=row.get("updated_at") or "",
        )
        if entry.key in self._canonical:
            if self.strict:
                raise DuplicateKeyError(f"name map key {entry.key!r} appears more than once")
            logger.warning("Duplicate name map key %s; later row wins", entry.key)
        self._canonical[entry.key] = entry

        legacy_key = (row.get("key") or "").strip()
        if legacy_key:
            self._index[legacy_key] = entry
        for alias in candidate_keys(name_en, birth):
            self._index[alias] = entry
        return entry

    def lookup(self, name_en: str, birth_date: str) -> Optional[NameMapEntry]:
        for alias in candidate_keys(name_en, birth_date):
            entry = self._index.get(alias)
            if entry is not None and entry.name_ja:
                return entry
        return None

    def name_ja_for(self, name_en: str, birth_date: str) -> str:
        entry = self.lookup(name_en, birth_date)
        return entry.name_ja if entry else ""

    def upsert(
        self,
        name_en: str,
        birth_date: str,
        name_ja: str,
        *,
        source: str = "wikidata",
        updated_at: Optional[str] = None,
    ) -> NameMapEntry:
        """Record a verified name under its punctuation-normalized canonical key."""

        birth = normalize_date(birth_date)
        canonical_name = norm_name(name_en)
        entry = NameMapEntry(
            key=key_of(canonical_name, birth),
            name_en=canonical_name,
            birth_date=birth,
            name_ja=name_ja.strip(),
            source=source,
            updated_at=updated_at or utc_now().date().isoformat(),
        )
        self._canonical[entry.key] = entry
        for alias in candidate_keys(name_en, birth):
            self._index[alias] = entry
        for alias in candidate_keys(canonical_name, birth):
            self._index.setdefault(alias, entry)
        return entry

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("no path given for name map")
        write_csv(target, (entry.model_dump() for entry in self.entries()), NAME_MAP_FIELDS)
        logger.info("Wrote %d name map entries to %s", len(self), target)
        return target


class FailureCache:
    """Failed lookups, used to avoid hammering the remote service with hopeless names.

    ``api_error`` entries never suppress a retry. Other reasons suppress it until
    ``cooldown`` has passed since ``checked_at``; an unparseable timestamp never
    suppresses.
    """

    def __init__(self, path: Optional[Path] = None, *, cooldown: timedelta = timedelta(days=30)) -> None:
        self.path = Path(path) if path is not None else None
        self.cooldown = cooldown
        self._entries: Dict[str, LookupFailure] = {}

    @classmethod
    def load(cls, path: Path, *, cooldown: timedelta = timedelta(days=30)) -> "FailureCache":
        cache = cls(path, cooldown=cooldown)
        _ensure_file(cache.path, FAILURE_FIELDS)
        for row in read_table(cache.path):
            key = (row.get("key") or "").strip()
            reason = (row.get("reason") or "").strip()
            checked_at = (row.get("checked_at") or "").strip()
            if not key or not reason or not checked_at:
                continue
            if reason not in FAIL_REASONS:
                logger.warning("Ignoring failure cache row %s with unknown reason %r", key, reason)
                continue
            cache._entries[key] = LookupFailure(key=key, reason=reason, checked_at=checked_at)
        logger.info("Loaded %d failure cache entries from %s", len(cache), path)
        return cache

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[LookupFailure]:
        return self._entries.get(key)

    def entries(self) -> List[LookupFailure]:
        return [self._entries[key] for key in sorted(self._entries)]

    def record(self, key: str, reason: str, *, checked_at: Optional[datetime] = None) -> LookupFailure:
        failure = LookupFailure(key=key, reason=reason, checked_at=format_timestamp(checked_at or utc_now()))
        self._entries[key] = failure
        return failure

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def should_skip(self, key: str, *, now: Optional[datetime] = None) -> bool:
        failure = self._entries.get(key)
        if failure is None or failure.reason == "api_error":
            return False
        checked = parse_timestamp(failure.checked_at)
        if checked is None:
            return False
        moment = now or utc_now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment - checked < self.cooldown

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("no path given for failure cache")
        write_csv(target, (failure.model_dump() for failure in self.entries()), FAILURE_FIELDS)
        logger.info("Wrote %d failure cache entries to %s", len(self), target)
        return target


__all__ = [
    "FAILURE_FIELDS",
    "NAME_MAP_FIELDS",
    "FailureCache",
    "NameMapStore",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
