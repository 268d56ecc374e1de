#!/usr/bin/env python
"""Run a sync for one organization from the command line.

Without ``--source`` this runs the same orchestrator as ``POST /api/sync``
and prints the summary. With ``--source`` it backfills an explicit date
range for that one source, skipping dates already stored unless
``--force`` is given. Exits 0 on success, 1 otherwise.

Usage:
    python -m scripts.run_sync --org 42
    python -m scripts.run_sync --org 42 --json
    python -m scripts.run_sync --org 42 --source amazon --start 2024-03-01 --end 2024-03-31
    python -m scripts.run_sync --org 42 --source amazon_ads --days 60 --force
"""

import argparse
import asyncio
import json
import sys
from datetime import date, timedelta

from integrations.source_protocol import SourceSyncResult, SyncStatus
from integrations.source_registry import ALL_SOURCE_NAMES
from logging_config import setup_logging
from schemas import SourceSyncResultResponse, SyncRunResponse
from services.sync_service import SyncRunSummary, SyncService


def print_source(name: str, source_result: SourceSyncResult) -> None:
    line = f"  {name:<12} {source_result.status.value:<8} {source_result.dates_synced} day(s)"
    if source_result.cursor_after:
        line += f"  cursor {source_result.cursor_after.isoformat()}"
    print(line)
    for error in source_result.errors:
        print(f"      - {error}")


def print_summary(result: SyncRunSummary) -> None:
    """Print one line per source followed by the overall summary."""
    for name, source_result in result.results.items():
        print_source(name, source_result)
    print("-" * 60)
    print(f"{'OK' if result.success else 'FAILED'}: {result.summary}")


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def resolve_range(args, parser: argparse.ArgumentParser, today: date) -> tuple[date, date]:
    """Turn ``--start/--end`` or ``--days`` into an inclusive date range."""
    if args.days is not None:
        if args.start or args.end:
            parser.error("--days cannot be combined with --start/--end")
        if args.days < 1:
            parser.error("--days must be a positive integer")
        return today - timedelta(days=args.days), today - timedelta(days=1)
    if not (args.start and args.end):
        parser.error("--source requires --start and --end, or --days")
    if args.start > args.end:
        parser.error("--start must not be after --end")
    return args.start, args.end


def main(argv: list[str] | None = None, service: SyncService | None = None) -> int:
    """Entry point: parse args, run the sync, return the exit code."""
    parser = argparse.ArgumentParser(description="Sync sources for one organization.")
    parser.add_argument("--org", type=int, required=True, help="Organization id")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument(
        "--source",
        choices=ALL_SOURCE_NAMES,
        help="Backfill a date range for this source only",
    )
    parser.add_argument("--start", type=parse_date, help="First date to backfill (YYYY-MM-DD)")
    parser.add_argument("--end", type=parse_date, help="Last date to backfill (YYYY-MM-DD)")
    parser.add_argument("--days", type=int, help="Backfill the last N days, excluding today")
    parser.add_argument("--force", action="store_true", help="Re-fetch dates that are already stored")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args(argv)

    if args.org <= 0:
        parser.error("--org must be a positive integer")
    if args.source is None and (args.start or args.end or args.days is not None or args.force):
        parser.error("--start, --end, --days and --force require --source")

    setup_logging("DEBUG" if args.verbose else None)
    service = service or SyncService()

    if args.source is not None:
        return backfill(args, parser, service)

    result = asyncio.run(service.run_sync(args.org))

    if args.json:
        response = SyncRunResponse.model_validate(result, from_attributes=True)
        print(json.dumps(response.model_dump(mode="json"), indent=2))
    else:
        print(f"Organization: {args.org}")
        print("-" * 60)
        print_summary(result)

    return 0 if result.success else 1


def backfill(args, parser: argparse.ArgumentParser, service: SyncService) -> int:
    start, end = resolve_range(args, parser, service.today())
    result = asyncio.run(
        service.backfill_range(args.org, args.source, start, end, force=args.force)
    )
    ok = result.status in (SyncStatus.OK, SyncStatus.SKIPPED)

    if args.json:
        response = SourceSyncResultResponse.model_validate(result, from_attributes=True)
        print(json.dumps(response.model_dump(mode="json"), indent=2))
    else:
        print(f"Organization: {args.org}  {args.source} {start.isoformat()}..{end.isoformat()}")
        print("-" * 60)
        print_source(args.source, result)
        print("-" * 60)
        print(f"{'OK' if ok else 'FAILED'}: {result.dates_synced} day(s) synced")

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
