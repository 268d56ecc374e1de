"""Sequential day-by-day backfill for cursor-based sources."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Iterable

from integrations.exceptions import CursorQueryFailed
from integrations.source_protocol import (
    CursorSource,
    DateOutcome,
    DateStatus,
    Gap,
    SourceSyncResult,
)
from services.fact_store import FactStore
from utils.dates import Clock, SystemClock

logger = logging.getLogger(__name__)


def _error_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


@dataclass(frozen=True)
class BackfillProgress:
    """Accumulator for the backfill fold: successes and failures so far."""

    successes: tuple[DateOutcome, ...] = ()
    failures: tuple[DateOutcome, ...] = ()

    def record_success(self, report_date: date, rows: int) -> "BackfillProgress":
        outcome = DateOutcome(report_date, DateStatus.SUCCESS, rows=rows)
        return BackfillProgress(self.successes + (outcome,), self.failures)

    def record_failure(self, report_date: date, message: str) -> "BackfillProgress":
        outcome = DateOutcome(report_date, DateStatus.ERROR, error=message)
        return BackfillProgress(self.successes, self.failures + (outcome,))

    @property
    def errors(self) -> list[str]:
        return [f"{o.report_date.isoformat()}: {o.error}" for o in self.failures]

    @property
    def outcomes(self) -> tuple[DateOutcome, ...]:
        return tuple(sorted(self.successes + self.failures, key=lambda o: o.report_date))


async def fold_dates(
    dates: Iterable[date],
    sync_one: Callable[[date], Awaitable[int]],
) -> BackfillProgress:
    """Run ``sync_one`` for each date in ascending order, never stopping early.

    A date that raises is recorded as a failure and the fold moves on to
    the next date.
    """
    progress = BackfillProgress()
    for report_date in sorted(dates):
        try:
            rows = await sync_one(report_date)
        except Exception as exc:
            logger.warning("Sync failed for %s: %s", report_date, exc)
            progress = progress.record_failure(report_date, _error_message(exc))
        else:
            progress = progress.record_success(report_date, rows)
    return progress


class BackfillService:
    """Walks a gap one date at a time, fetching and upserting each date."""

    def __init__(self, store: FactStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    async def backfill(
        self,
        org_id: int,
        source: CursorSource,
        credentials: dict,
        gap: Gap,
    ) -> SourceSyncResult:
        """Fetch and store every date in ``gap`` and report the outcome.

        Per-date failures are collected, not raised. Sources with a
        reconciliation step run it once afterwards; its failure is added to
        the error list without changing ``dates_synced``.
        """
        name = source.source_name
        if gap.is_empty:
            return SourceSyncResult.build(gap.cursor, gap.cursor, 0)

        async def sync_one(report_date: date) -> int:
            rows = await source.fetch_for_date(credentials, report_date)
            return self._store.upsert_rows(org_id, name, rows)

        progress = await fold_dates(gap.dates, sync_one)
        errors = progress.errors

        if source.reconcile_source:
            try:
                rows = await source.reconcile(credentials, self._clock.now())
                written = self._store.upsert_rows(org_id, source.reconcile_source, rows)
                logger.info("%s: reconciled %d record(s) (org %s)", name, written, org_id)
            except Exception as exc:
                logger.warning("%s: %s step failed: %s", name, source.reconcile_label, exc)
                errors.append(f"{source.reconcile_label}: {_error_message(exc)}")

        try:
            cursor_after = self._store.max_date(org_id, name)
        except CursorQueryFailed as exc:
            errors.append(f"DB query failed: {exc}")
            cursor_after = None

        logger.info(
            "%s: synced %d/%d date(s), %d error(s) (org %s)",
            name, len(progress.successes), len(gap.dates), len(errors), org_id,
        )
        return SourceSyncResult.build(
            cursor_before=gap.cursor,
            cursor_after=cursor_after,
            dates_synced=len(progress.successes),
            errors=errors,
            dates=progress.outcomes,
        )
