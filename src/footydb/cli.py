"""Command-line interface for name enrichment and spreadsheet conversion."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Sequence

from footydb.config import Settings, get_settings
from footydb.ingest.blocks import build_country_master, convert_callup_sheet, convert_club_sheet
from footydb.ingest.tables import CALLUP_FIELDS, CLUB_SQUAD_FIELDS
from footydb.ingest.tabular import read_sheet_rows, write_csv
from footydb.names.enrich import EnrichOptions, EnrichReport, EnrichTarget, run_enrichment
from footydb.persistence import FailureCache, NameMapStore
from footydb.resolve import ClubResolver, load_club_master


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="footydb", description="Curated football data tooling")
    parser.add_argument("--data-dir", type=Path, default=settings.data_dir, help="Directory holding the CSV tables")
    parser.add_argument("--debug", action="store_true", help="Log per-key progress")
    subparsers = parser.add_subparsers(dest="command", required=True)

    enrich = subparsers.add_parser("enrich", help="Fill name_ja in call-up and club squad tables")
    scope = enrich.add_mutually_exclusive_group()
    scope.add_argument("--callups", action="store_true", help="Only process callups_site.csv")
    scope.add_argument("--clubs", action="store_true", help="Only process club_squads_site.csv")
    enrich.add_argument("--lookup", action="store_true", help="Query Wikidata for names missing from the map")
    enrich.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Maximum unique lookups per target, applied after cached failures are skipped (0 = no limit)",
    )
    enrich.add_argument(
        "--skip-days",
        type=int,
        default=settings.skip_days,
        help="Days a notfound/ambiguous/no_ja failure suppresses a retry",
    )
    enrich.add_argument("--country", default="", help="Only call-up rows of this country")
    enrich.add_argument("--dry-run", action="store_true", help="Do not write any file except --dump")
    enrich.add_argument("--overwrite", action="store_true", help="Replace existing name_ja values too")
    enrich.add_argument(
        "--treat-same-as-empty",
        action="store_true",
        help="Treat name_ja equal to name_en as a placeholder",
    )
    enrich.add_argument(
        "--concurrency",
        type=int,
        default=settings.lookup_concurrency,
        help="Lookups in flight (1-10)",
    )
    enrich.add_argument(
        "--delay",
        type=int,
        default=settings.lookup_delay_ms,
        help="Pause in milliseconds after each lookup",
    )
    enrich.add_argument("--dump", type=Path, default=None, help="Write failed lookups with context to this CSV")

    club = subparsers.add_parser("convert-club", help="Convert a pasted club squad sheet")
    club.add_argument("input", type=Path, help="Workbook (.xlsx) or CSV export")
    club.add_argument("--sheet", default=None, help="Worksheet name (default: first sheet)")
    club.add_argument("--season", default="", help="Season used until a section marker names one")
    club.add_argument("--window", choices=("summer", "winter"), default="winter")
    club.add_argument("--output", type=Path, default=None, help="Output CSV path")

    callups = subparsers.add_parser("convert-callups", help="Convert a pasted national-team call-up sheet")
    callups.add_argument("input", type=Path, help="Workbook (.xlsx) or CSV export")
    callups.add_argument("--sheet", default=None, help="Worksheet name (default: first sheet)")
    callups.add_argument("--competition", default="WC")
    callups.add_argument("--edition", default="2026")
    callups.add_argument("--country-master", type=Path, default=None, help="Country master CSV or workbook")
    callups.add_argument("--snapshot-date", default=None, help="Snapshot date (default: today)")
    callups.add_argument("--output", type=Path, default=None, help="Output CSV path")
    return parser


def _print_enrich_report(report: EnrichReport, *, lookup: bool, dry_run: bool) -> None:
    for name in report.skipped_targets:
        print(f"[skip] not found: {name}")
    for summary in report.targets:
        print(
            f"[target] {summary.name} rows={summary.rows} candidates={summary.candidates} "
            f"filled_by_map={summary.filled_by_map} missing={summary.missing}"
        )
        if lookup:
            print(
                f"[lookup result] resolved_unique={summary.resolved_unique}, "
                f"filled_rows={summary.filled_after_lookup}, remaining={summary.remaining}"
            )
    print("\n=== summary ===")
    print(f"candidates_total: {report.candidates}")
    print(f"filled_total: {report.filled}")
    print(f"missing_before_lookup_total: {report.missing_before_lookup}")
    print(f"lookups_total: {report.lookups}")
    print(f"name_map size: {report.name_map_size}")
    if lookup:
        stats = " ".join(f"{reason}={count}" for reason, count in report.reasons.items())
        print(f"lookup_stats: {stats}")
    print(f"mode: {'fill+lookup' if lookup else 'fill-only'}{' (dry-run)' if dry_run else ''}")


def _run_enrich(args: argparse.Namespace, settings: Settings) -> None:
    targets: List[EnrichTarget] = []
    if not args.clubs:
        targets.append(EnrichTarget(settings.callups_path, "callups"))
    if not args.callups:
        targets.append(EnrichTarget(settings.club_squads_path, "clubs"))

    store = NameMapStore.load(settings.name_map_path, strict=settings.strict_keys)
    failures = FailureCache.load(settings.failure_cache_path, cooldown=timedelta(days=max(0, args.skip_days)))
    options = EnrichOptions(
        lookup=args.lookup,
        dry_run=args.dry_run,
        overwrite=args.overwrite,
        treat_same_as_empty=args.treat_same_as_empty,
        limit=max(0, args.limit),
        country=args.country.strip(),
        concurrency=max(1, min(10, args.concurrency)),
        delay=max(0, args.delay) / 1000.0,
        backup_dir=settings.backup_dir,
        dump_path=args.dump,
        user_agent=settings.user_agent,
        timeout=settings.lookup_timeout,
    )
    report = run_enrichment(targets, store, failures, options=options)
    _print_enrich_report(report, lookup=args.lookup, dry_run=args.dry_run)
    if args.dump:
        print(f"[dump] failures: {args.dump} rows={len(report.failures)}")


def _print_unresolved(label: str, items: Sequence[str]) -> None:
    if not items:
        return
    preview = ", ".join(items[:5])
    more = len(items) - 5
    suffix = f", +{more} more" if more > 0 else ""
    print(f"{label}: {preview}{suffix}")


def _run_convert_club(args: argparse.Namespace, settings: Settings) -> None:
    resolver = ClubResolver(load_club_master(settings.club_master_path, strict=settings.strict_keys))
    rows, report = convert_club_sheet(
        read_sheet_rows(args.input, args.sheet),
        resolver,
        season=args.season,
        window=args.window,
    )
    output = args.output or settings.data_dir / "club_squads_tm_converted.csv"
    write_csv(output, (row.model_dump() for row in rows), CLUB_SQUAD_FIELDS)
    print(f"Wrote {report.total_rows} rows to {output}")
    if report.missing_keys:
        print(f"Rows without club_key/league_key: {report.missing_keys}")
    _print_unresolved("Unresolved clubs", report.unresolved)


def _run_convert_callups(args: argparse.Namespace, settings: Settings) -> None:
    master_path = args.country_master or settings.country_master_path
    master = build_country_master(
        read_sheet_rows(master_path),
        competition=args.competition,
        edition=args.edition,
    )
    rows, report = convert_callup_sheet(
        read_sheet_rows(args.input, args.sheet),
        master,
        competition=args.competition,
        edition=args.edition,
        snapshot_date=args.snapshot_date or date.today().isoformat(),
    )
    output = args.output or settings.data_dir / "callups_tm_converted.csv"
    write_csv(output, (row.model_dump() for row in rows), CALLUP_FIELDS)
    print(f"Wrote {report.total_rows} rows to {output}")
    _print_unresolved("Countries missing from the country master", report.unresolved)


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = get_settings()
    args = _build_parser(settings).parse_args(argv)
    if args.data_dir != settings.data_dir:
        settings = replace(settings, data_dir=args.data_dir)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "enrich":
        _run_enrich(args, settings)
    elif args.command == "convert-club":
        _run_convert_club(args, settings)
    elif args.command == "convert-callups":
        _run_convert_callups(args, settings)


if __name__ == "__main__":
    main()
