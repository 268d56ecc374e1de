"""Sync service - runs every source's sync for an organization concurrently."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from config import settings
from integrations.exceptions import CursorQueryFailed, SettingsDecryptError
from integrations.source_protocol import (
    CursorSource,
    Gap,
    ReportJobClient,
    SourceSyncResult,
    SyncStatus,
)
from integrations.source_registry import SourceRegistry, get_source_registry
from services.backfill_service import BackfillService
from services.credential_service import CredentialsProvider
from services.fact_store import FactStore
from services.gap_service import GapService
from services.report_job_engine import EngineConfig, ReportJobEngine
from utils.dates import Clock, SystemClock, dates_between, local_today

logger = logging.getLogger(__name__)

UP_TO_DATE_MESSAGE = "All data is up to date"


@dataclass(frozen=True)
class SyncRunSummary:
    """Outcome of one ``run_sync`` call across all sources."""

    success: bool
    summary: str
    results: dict[str, SourceSyncResult] = field(default_factory=dict)


def build_summary(results: dict[str, SourceSyncResult], labels: dict[str, str] | None = None) -> str:
    """Human-readable summary listing only sources that synced at least one day."""
    labels = labels or {}
    parts = []
    for name, result in results.items():
        if result.status is SyncStatus.SKIPPED or result.dates_synced <= 0:
            continue
        unit = "day" if result.dates_synced == 1 else "days"
        parts.append(f"{labels.get(name, name)}: {result.dates_synced} {unit}")
    if parts:
        return ", ".join(parts)
    return UP_TO_DATE_MESSAGE


class SyncService:
    """Service for syncing every registered source for one organization."""

    def __init__(
        self,
        source_registry: Optional[SourceRegistry] = None,
        store: Optional[FactStore] = None,
        credentials: Optional[CredentialsProvider] = None,
        clock: Optional[Clock] = None,
        engine_config: Optional[EngineConfig] = None,
    ):
        """Initialize with optional collaborators for dependency injection.

        Args:
            source_registry: Registry of source clients. If None, a default
                registry is created on first use.
            store: Fact store. Defaults to one bound to the app database.
            credentials: Per-organization settings provider.
            clock: Time source; tests pass a fake clock.
            engine_config: Report job engine timings.
        """
        self._registry = source_registry
        self._store = store or FactStore()
        self._credentials = credentials or CredentialsProvider()
        self._clock = clock or SystemClock()
        self._engine_config = engine_config
        self._gaps = GapService(self._store, self._clock)
        self._backfill = BackfillService(self._store, self._clock)

    @property
    def registry(self) -> SourceRegistry:
        """Get the source registry, creating default if not provided."""
        if self._registry is None:
            self._registry = get_source_registry()
        return self._registry

    def today(self) -> date:
        return local_today(self._clock.now(), settings.SYNC_TIMEZONE)

    async def run_sync(self, org_id: int) -> SyncRunSummary:
        """Sync all sources for ``org_id`` concurrently and summarize.

        Source failures are captured in each source's result; the call
        itself only raises if the orchestration fails.
        """
        names = self.registry.list_sources()
        logger.info("Sync started for org %s: %s", org_id, ", ".join(names))

        outcomes = await asyncio.gather(*(self._sync_guarded(org_id, name) for name in names))
        results = dict(zip(names, outcomes))

        success = all(r.status in (SyncStatus.OK, SyncStatus.SKIPPED) for r in results.values())
        summary = build_summary(results, {name: self.registry.label(name) for name in names})
        logger.info("Sync finished for org %s (success=%s): %s", org_id, success, summary)
        return SyncRunSummary(success=success, summary=summary, results=results)

    async def _sync_guarded(self, org_id: int, name: str) -> SourceSyncResult:
        try:
            return await self.sync_source(org_id, name)
        except Exception as exc:
            logger.error("Unexpected error syncing %s for org %s", name, org_id, exc_info=True)
            return SourceSyncResult.failed(
                str(exc) or type(exc).__name__, self._cursor_or_none(org_id, name)
            )

    def _cursor_or_none(self, org_id: int, name: str) -> date | None:
        try:
            return self._store.max_date(org_id, name)
        except (CursorQueryFailed, ValueError):
            return None

    async def backfill_range(
        self,
        org_id: int,
        name: str,
        start: date,
        end: date,
        force: bool = False,
    ) -> SourceSyncResult:
        """Fetch an explicit inclusive date range for one source.

        Dates already stored are skipped unless ``force`` is set, in which
        case every date in the range is fetched again and replaced.

        Raises:
            ValueError: If ``start`` is after ``end`` or the source is unknown.
        """
        if start > end:
            raise ValueError(f"start {start} is after end {end}")
        source = self.registry.get_source(name)
        window = dates_between(start, end)
        logger.info(
            "Backfill %s for org %s: %s..%s (%d date(s), force=%s)",
            name, org_id, start, end, len(window), force,
        )

        try:
            cursor = self._store.max_date(org_id, name)
        except CursorQueryFailed as exc:
            return SourceSyncResult.failed(f"DB query failed: {exc}")

        credentials, failure = self._load_credentials(org_id, name, cursor)
        if failure is not None:
            return failure

        if isinstance(source, ReportJobClient):
            engine = ReportJobEngine(source, self._store, self._clock, self._engine_config)
            return await engine.sync_dates(org_id, credentials, window, cursor, force=force)

        if force:
            todo = window
        else:
            try:
                existing = self._store.existing_dates(org_id, name, window)
            except CursorQueryFailed as exc:
                return SourceSyncResult.failed(f"DB query failed: {exc}", cursor)
            todo = [d for d in window if d not in existing]
        gap = Gap(from_date=start, to_date=end, dates=tuple(todo), cursor=cursor)
        return await self._backfill.backfill(org_id, source, credentials, gap)

    async def sync_source(self, org_id: int, name: str) -> SourceSyncResult:
        """Sync a single source: cursor, then credentials, then the work itself."""
        source = self.registry.get_source(name)
        if isinstance(source, ReportJobClient):
            return await self._sync_report_jobs(org_id, source)
        return await self._sync_cursor_source(org_id, source)

    async def _sync_cursor_source(self, org_id: int, source: CursorSource) -> SourceSyncResult:
        name = source.source_name
        try:
            gap = self._gaps.compute_gap(org_id, name, source.cutoff)
        except CursorQueryFailed as exc:
            return SourceSyncResult.failed(f"DB query failed: {exc}")

        credentials, failure = self._load_credentials(org_id, name, gap.cursor)
        if failure is not None:
            return failure
        return await self._backfill.backfill(org_id, source, credentials, gap)

    async def _sync_report_jobs(self, org_id: int, client: ReportJobClient) -> SourceSyncResult:
        name = client.source_name
        try:
            cursor = self._store.max_date(org_id, name)
        except CursorQueryFailed as exc:
            return SourceSyncResult.failed(f"DB query failed: {exc}")

        credentials, failure = self._load_credentials(org_id, name, cursor)
        if failure is not None:
            return failure

        engine = ReportJobEngine(client, self._store, self._clock, self._engine_config)
        return await engine.sync(org_id, credentials, self.today(), cursor)

    def _load_credentials(self, org_id: int, name: str, cursor) -> tuple[dict | None, SourceSyncResult | None]:
        try:
            credentials = self._credentials.get(org_id, name)
        except SettingsDecryptError as exc:
            logger.warning("%s: settings decrypt failed for org %s: %s", name, org_id, exc)
            return None, SourceSyncResult.failed(f"Settings decrypt failed: {exc}", cursor)
        if credentials is None:
            logger.info("%s: no settings configured for org %s, skipping", name, org_id)
            return None, SourceSyncResult.skipped(cursor)
        return credentials, None
