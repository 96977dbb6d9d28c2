"""Fill ``name_ja`` in the roster tables from the name map and, optionally, a remote lookup.

For each target file the run:

1. backs the file up once per day,
2. picks candidate rows (keyable and without a Japanese name),
3. fills what the name map already knows,
4. looks up the remaining unique keys that the failure cache does not suppress,
5. stores verified names, records failures and fills again,
6. rewrites the file.

The name map and failure cache are rewritten at the end of the run.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from footydb.ingest.normalize import normalize_date
from footydb.ingest.tabular import Row, fieldnames_of, read_optional_table, write_csv
from footydb.names.keys import key_of, norm_name
from footydb.names.lookup import (
    DEFAULT_USER_AGENT,
    LookupKey,
    NameLookup,
    Sleep,
    WikidataLookup,
    build_client,
    chunked,
    lookup_batch,
)
from footydb.persistence import FailureCache, NameMapStore, utc_now


logger = logging.getLogger(__name__)

TargetKind = Literal["callups", "clubs"]

CALLUP_CONTEXT_FIELDS = (
    "competition",
    "edition",
    "confederation",
    "confederation_bucket",
    "country",
    "current_club",
    "snapshot_date",
    "source",
)
CLUB_CONTEXT_FIELDS = ("season", "league", "club", "league_key", "club_key", "snapshot_date", "source")
RESULT_REASONS = ("ok", "notfound", "ambiguous", "no_ja", "api_error")


@dataclass(frozen=True)
class EnrichTarget:
    path: Path
    kind: TargetKind

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class EnrichOptions:
    lookup: bool = False
    dry_run: bool = False
    overwrite: bool = False
    treat_same_as_empty: bool = False
    limit: int = 0
    country: str = ""
    concurrency: int = 3
    delay: float = 0.15
    chunk_size: int = 40
    chunk_pause: float = 0.25
    backup_dir: Optional[Path] = Path("_backup")
    dump_path: Optional[Path] = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 15.0


@dataclass(frozen=True)
class TargetSummary:
    name: str
    rows: int
    candidates: int
    filled_by_map: int
    missing: int
    lookups: int = 0
    resolved_unique: int = 0
    filled_after_lookup: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.missing - self.filled_after_lookup)


@dataclass(frozen=True)
class EnrichReport:
    """Totals of one enrichment run."""

    candidates: int
    filled: int
    missing_before_lookup: int
    lookups: int
    reasons: Dict[str, int]
    name_map_size: int
    targets: Tuple[TargetSummary, ...] = ()
    skipped_targets: Tuple[str, ...] = ()
    failures: Tuple[Row, ...] = field(default=(), repr=False)


def backup_target(path: Path, backup_dir: Path, today: date) -> Optional[Path]:
    """Copy ``path`` to ``<backup_dir>/<YYYY-MM-DD>/<stem>.bak_<YYYY-MM-DD>.csv`` unless done today."""

    stamp = today.isoformat()
    destination = backup_dir / stamp / f"{path.stem}.bak_{stamp}.csv"
    if destination.exists():
        return None
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(path, destination)
    logger.info("Backed up %s to %s", path, destination)
    return destination


def is_candidate(row: Row, options: EnrichOptions) -> bool:
    if options.country and (row.get("country") or "").strip() != options.country:
        return False
    name_en = (row.get("name_en") or "").strip()
    if not name_en or not normalize_date(row.get("birth_date") or ""):
        return False
    if options.overwrite:
        return True
    name_ja = (row.get("name_ja") or "").strip()
    if not name_ja:
        return True
    return options.treat_same_as_empty and name_ja == name_en


def failure_row(target: EnrichTarget, reason: str, name_en: str, birth_date: str, context: Row) -> Row:
    """One line of the failure dump, carrying the columns that help locate the player."""

    columns = CALLUP_CONTEXT_FIELDS if target.kind == "callups" else CLUB_CONTEXT_FIELDS
    row: Row = {"target": target.name}
    row.update({column: context.get(column) or "" for column in columns})
    row.update(name_en=name_en, birth_date=birth_date, reason=reason)
    return row


def _fill_from_store(rows: Sequence[Row], store: NameMapStore) -> Tuple[int, List[Row]]:
    filled = 0
    missing: List[Row] = []
    for row in rows:
        name_ja = store.name_ja_for(row.get("name_en") or "", row.get("birth_date") or "")
        if name_ja:
            row["name_ja"] = name_ja
            filled += 1
        else:
            missing.append(row)
    return filled, missing


async def _lookup_missing(
    target: EnrichTarget,
    missing: Sequence[Row],
    store: NameMapStore,
    failures: FailureCache,
    lookup: NameLookup,
    options: EnrichOptions,
    reasons: Dict[str, int],
    dump_rows: List[Row],
    sleep: Sleep,
) -> Tuple[int, int]:
    """Run the lookup for the unique keys behind ``missing``; returns (lookups, resolved)."""

    unique: Dict[str, LookupKey] = {}
    context: Dict[str, Row] = {}
    for row in missing:
        item = LookupKey(norm_name(row.get("name_en") or ""), normalize_date(row.get("birth_date") or ""))
        unique.setdefault(item.key, item)
        context.setdefault(item.key, row)

    now = utc_now()
    runnable = [item for item in unique.values() if not failures.should_skip(item.key, now=now)]
    skipped = len(unique) - len(runnable)
    if options.limit > 0:
        runnable = runnable[: options.limit]
    logger.info(
        "[lookup] unique=%d -> filtered=%d (skipped=%d) -> run=%d (limit=%s)",
        len(unique),
        len(unique) - skipped,
        skipped,
        len(runnable),
        options.limit or "none",
    )

    lookups = 0
    resolved = 0
    for offset, chunk in enumerate(chunked(runnable, options.chunk_size)):
        results = await lookup_batch(
            lookup,
            chunk,
            concurrency=options.concurrency,
            delay=options.delay,
            sleep=sleep,
            progress_offset=offset * options.chunk_size,
            progress_total=len(runnable),
        )
        lookups += len(chunk)
        for item, result in zip(chunk, results):
            if result.ok:
                reasons["ok"] += 1
                resolved += 1
                store.upsert(item.name_en, item.birth_date, result.name_ja)
                failures.discard(item.key)
                continue
            reason = result.reason or "api_error"
            reasons[reason] = reasons.get(reason, 0) + 1
            failures.record(item.key, reason)
            dump_rows.append(failure_row(target, reason, item.name_en, item.birth_date, context[item.key]))
        if options.chunk_pause > 0:
            await sleep(options.chunk_pause)
    return lookups, resolved


async def run_enrichment_async(
    targets: Sequence[EnrichTarget],
    store: NameMapStore,
    failures: FailureCache,
    lookup: Optional[NameLookup] = None,
    options: EnrichOptions = EnrichOptions(),
    *,
    today: Optional[date] = None,
    sleep: Sleep = asyncio.sleep,
) -> EnrichReport:
    """Enrich every target in turn; see the module docstring for the steps.

    When ``options.lookup`` is set and no ``lookup`` is given, a
    :class:`WikidataLookup` over a fresh ``httpx.AsyncClient`` is used for the
    duration of the run.
    """

    today = today or date.today()
    reasons = {reason: 0 for reason in RESULT_REASONS}
    dump_rows: List[Row] = []
    summaries: List[TargetSummary] = []
    skipped_targets: List[str] = []

    async with AsyncExitStack() as stack:
        if options.lookup and lookup is None:
            client = await stack.enter_async_context(
                build_client(user_agent=options.user_agent, timeout=options.timeout)
            )
            lookup = WikidataLookup(client, sleep=sleep)

        for target in targets:
            if not target.path.exists():
                logger.warning("[skip] not found: %s", target.path)
                skipped_targets.append(target.name)
                continue

            rows = read_optional_table(target.path)
            header = fieldnames_of(rows)
            if not options.dry_run and options.backup_dir is not None:
                backup_target(target.path, options.backup_dir, today)

            candidates = [row for row in rows if is_candidate(row, options)]
            filled_by_map, missing = _fill_from_store(candidates, store)
            logger.info(
                "[target] %s rows=%d candidates=%d filled_by_map=%d missing=%d",
                target.name,
                len(rows),
                len(candidates),
                filled_by_map,
                len(missing),
            )

            lookups = resolved = filled_after = 0
            if options.lookup and lookup is not None and missing:
                lookups, resolved = await _lookup_missing(
                    target, missing, store, failures, lookup, options, reasons, dump_rows, sleep
                )
                filled_after, _ = _fill_from_store(missing, store)
                logger.info(
                    "[lookup result] resolved_unique=%d filled_rows=%d remaining=%d",
                    resolved,
                    filled_after,
                    len(missing) - filled_after,
                )

            if not options.dry_run and header:
                if "name_ja" not in header:
                    header.append("name_ja")
                write_csv(target.path, rows, header)

            summaries.append(
                TargetSummary(
                    name=target.name,
                    rows=len(rows),
                    candidates=len(candidates),
                    filled_by_map=filled_by_map,
                    missing=len(missing),
                    lookups=lookups,
                    resolved_unique=resolved,
                    filled_after_lookup=filled_after,
                )
            )

    if not options.dry_run:
        store.save()
        failures.save()

    if options.dump_path is not None:
        write_csv(options.dump_path, dump_rows, fieldnames_of(dump_rows) or ("target", "name_en", "birth_date", "reason"))
        logger.info("[dump] failures: %s rows=%d", options.dump_path, len(dump_rows))

    report = EnrichReport(
        candidates=sum(summary.candidates for summary in summaries),
        filled=sum(summary.filled_by_map + summary.filled_after_lookup for summary in summaries),
        missing_before_lookup=sum(summary.missing for summary in summaries),
        lookups=sum(summary.lookups for summary in summaries),
        reasons=reasons,
        name_map_size=len(store),
        targets=tuple(summaries),
        skipped_targets=tuple(skipped_targets),
        failures=tuple(dump_rows),
    )
    logger.info(
        "Enrichment done: candidates=%d filled=%d lookups=%d",
        report.candidates,
        report.filled,
        report.lookups,
    )
    return report


def run_enrichment(
    targets: Sequence[EnrichTarget],
    store: NameMapStore,
    failures: FailureCache,
    lookup: Optional[NameLookup] = None,
    options: EnrichOptions = EnrichOptions(),
    *,
    today: Optional[date] = None,
) -> EnrichReport:
    return asyncio.run(run_enrichment_async(targets, store, failures, lookup, options, today=today))


def failure_key(name_en: str, birth_date: str) -> str:
    """Key under which a failed lookup for this player is cached."""

    return key_of(norm_name(name_en), normalize_date(birth_date))


__all__ = [
    "EnrichOptions",
    "EnrichReport",
    "EnrichTarget",
    "TargetSummary",
    "backup_target",
    "failure_key",
    "failure_row",
    "is_candidate",
    "run_enrichment",
    "run_enrichment_async",
]
