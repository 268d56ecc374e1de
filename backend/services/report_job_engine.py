"""Asynchronous report job engine.

Drives one remote report job per date through
``requested -> processing* -> completed | failed``, with two ways for a
job to be abandoned for the current run:

- ``timeout``: the batch or run deadline passed while the job was pending.
- ``still_processing``: the platform signalled a rate limit; polling stops
  immediately and every pending or unrequested job is left for the next run.

Abandoned dates are still missing from the store, so the next scheduled run
requests them again. Time only advances through the injected clock, so the
whole machine can be driven in tests without real delays.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from config import settings
from integrations.exceptions import CursorQueryFailed, ProviderError, ProviderRateLimitError
from integrations.source_protocol import (
    DateOutcome,
    DateStatus,
    RemoteJobStatus,
    ReportJob,
    ReportJobClient,
    ReportJobState,
    SourceSyncResult,
)
from services.fact_store import FactStore
from utils.dates import Clock, SystemClock, lookback_dates

logger = logging.getLogger(__name__)


class PollOutcome(str, Enum):
    """Classification of a single status check."""

    READY = "ready"
    PENDING = "pending"
    TERMINAL_FAILURE = "terminal_failure"
    TRANSIENT_FAILURE = "transient_failure"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    download_url: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class EngineConfig:
    """Timing and batching knobs for one engine run (seconds)."""

    batch_size: int = 5
    poll_interval: float = 15.0
    batch_deadline: float = 180.0
    run_deadline: float = 270.0
    batch_pause: float = 5.0

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size!r}")

    @classmethod
    def from_settings(cls) -> "EngineConfig":
        return cls(
            batch_size=settings.ADS_BATCH_SIZE,
            poll_interval=settings.ADS_POLL_INTERVAL_SECONDS,
            batch_deadline=settings.ADS_BATCH_DEADLINE_SECONDS,
            run_deadline=settings.ADS_RUN_DEADLINE_SECONDS,
            batch_pause=settings.ADS_BATCH_PAUSE_SECONDS,
        )


async def check_job(client: ReportJobClient, credentials: dict, job: ReportJob) -> PollResult:
    """Poll one job and classify the answer."""
    try:
        report = await client.poll_status(credentials, job.remote_job_id)
    except ProviderRateLimitError:
        return PollResult(PollOutcome.RATE_LIMITED)
    except Exception as exc:
        return PollResult(PollOutcome.TRANSIENT_FAILURE, message=str(exc) or type(exc).__name__)

    if report.status is RemoteJobStatus.COMPLETED and report.download_url:
        return PollResult(PollOutcome.READY, download_url=report.download_url)
    if report.status is RemoteJobStatus.FAILURE:
        return PollResult(
            PollOutcome.TERMINAL_FAILURE, message=report.failure_reason or "Report failed"
        )
    return PollResult(PollOutcome.PENDING)


class ReportJobEngine:
    """Requests, polls, downloads and stores asynchronous reports.

    One engine instance serves one run for one organization. Rate-limit
    state lives on the instance and is never shared between runs.
    """

    def __init__(
        self,
        client: ReportJobClient,
        store: FactStore,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ):
        self._client = client
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig.from_settings()
        self._rate_limited = False

    @property
    def rate_limited(self) -> bool:
        return self._rate_limited

    async def sync(
        self,
        org_id: int,
        credentials: dict,
        today: date,
        cursor_before: date | None,
        offsets: list[int] | None = None,
    ) -> SourceSyncResult:
        """Sync the fixed lookback window ending before ``today``.

        Dates that already have rows are skipped before any request is made.
        """
        window = lookback_dates(today, offsets or settings.ADS_LOOKBACK_OFFSETS)
        return await self.sync_dates(org_id, credentials, window, cursor_before)

    async def sync_dates(
        self,
        org_id: int,
        credentials: dict,
        window: list[date],
        cursor_before: date | None,
        force: bool = False,
    ) -> SourceSyncResult:
        """Request, collect and store reports for every date in ``window``.

        Unless ``force`` is set, dates that already have rows are skipped.
        """
        name = self._client.source_name
        window = sorted(set(window))
        if force:
            existing = set()
        else:
            try:
                existing = self._store.existing_dates(org_id, name, window)
            except CursorQueryFailed as exc:
                return SourceSyncResult.failed(f"DB query failed: {exc}", cursor_before)
        todo = [d for d in window if d not in existing]
        skipped = [DateOutcome(d, DateStatus.SKIPPED) for d in window if d in existing]

        if not todo:
            logger.info("%s: all %d requested date(s) already stored (org %s)", name, len(window), org_id)
            return SourceSyncResult.build(cursor_before, cursor_before, 0, dates=skipped)

        try:
            session_credentials = await self._client.prepare(credentials)
        except ProviderError as exc:
            logger.warning("%s: authentication failed: %s", name, exc)
            return SourceSyncResult.failed(f"Token exchange failed: {exc}", cursor_before)

        jobs = await self.run(org_id, session_credentials, todo)

        outcomes = sorted(skipped + [_job_outcome(job) for job in jobs], key=lambda o: o.report_date)
        errors = [
            f"{job.report_date.isoformat()}: {job.error}"
            for job in jobs
            if job.state is ReportJobState.FAILED
        ]
        try:
            cursor_after = self._store.max_date(org_id, name)
        except CursorQueryFailed as exc:
            errors.append(f"DB query failed: {exc}")
            cursor_after = None
        completed = sum(1 for job in jobs if job.state is ReportJobState.COMPLETED)
        return SourceSyncResult.build(
            cursor_before=cursor_before,
            cursor_after=cursor_after,
            dates_synced=completed,
            errors=errors,
            dates=outcomes,
        )

    async def run(self, org_id: int, credentials: dict, dates: list[date]) -> list[ReportJob]:
        """Process ``dates`` in ascending, fixed-size batches.

        Returns:
            One ReportJob per date, each in a final state.
        """
        jobs = [ReportJob(report_date=d) for d in sorted(dates)]
        size = self._config.batch_size
        batches = [jobs[i:i + size] for i in range(0, len(jobs), size)]
        run_deadline = self._clock.monotonic() + self._config.run_deadline
        self._rate_limited = False

        for index, batch in enumerate(batches):
            if self._rate_limited:
                self._abandon(batch, ReportJobState.STILL_PROCESSING)
                continue
            if index > 0 and self._config.batch_pause > 0:
                await self._sleep_until(run_deadline, self._config.batch_pause)
            if self._clock.monotonic() >= run_deadline:
                self._abandon(batch, ReportJobState.TIMEOUT)
                continue

            batch_deadline = min(
                self._clock.monotonic() + self._config.batch_deadline, run_deadline
            )
            logger.info(
                "%s: batch %d/%d, %s..%s (org %s)",
                self._client.source_name, index + 1, len(batches),
                batch[0].report_date, batch[-1].report_date, org_id,
            )
            await self._request(credentials, batch)
            await self._poll_until_settled(org_id, credentials, batch, batch_deadline)

        return jobs

    async def tick(
        self,
        org_id: int,
        credentials: dict,
        pending: list[ReportJob],
        deadline: float,
    ) -> None:
        """Poll each pending job once, in order, applying the transition.

        Stops early on a rate-limit signal (marking every job still pending
        as still processing) or when the deadline passes (leaving the rest
        pending).
        """
        for position, job in enumerate(pending):
            if self._clock.monotonic() >= deadline:
                return
            result = await check_job(self._client, credentials, job)

            if result.outcome is PollOutcome.RATE_LIMITED:
                self._rate_limited = True
                logger.warning(
                    "%s: rate limited while polling %s (job %d of %d); stopping for this run",
                    self._client.source_name, job.report_date, position + 1, len(pending),
                )
                self._abandon(pending, ReportJobState.STILL_PROCESSING)
                return
            if result.outcome is PollOutcome.READY:
                await self._complete(org_id, job, result.download_url)
            elif result.outcome in (PollOutcome.TERMINAL_FAILURE, PollOutcome.TRANSIENT_FAILURE):
                self._fail(job, result.message)
            else:
                job.state = ReportJobState.PROCESSING

    async def _request(self, credentials: dict, batch: list[ReportJob]) -> None:
        results = await asyncio.gather(
            *(self._client.create_job(credentials, job.report_date) for job in batch),
            return_exceptions=True,
        )
        for job, result in zip(batch, results):
            if isinstance(result, Exception):
                self._fail(job, f"Request: {str(result) or type(result).__name__}")
            elif isinstance(result, BaseException):
                raise result
            else:
                job.remote_job_id = result
                job.state = ReportJobState.PROCESSING

    async def _poll_until_settled(
        self,
        org_id: int,
        credentials: dict,
        batch: list[ReportJob],
        deadline: float,
    ) -> None:
        while True:
            pending = [job for job in batch if job.state.is_pending]
            if not pending:
                return
            if not await self._sleep_until(deadline, self._config.poll_interval):
                self._abandon(pending, ReportJobState.TIMEOUT)
                return
            await self.tick(org_id, credentials, pending, deadline)
            if self._rate_limited:
                return

    async def _sleep_until(self, deadline: float, seconds: float) -> bool:
        """Sleep without passing ``deadline``. Returns False if the deadline is reached."""
        remaining = deadline - self._clock.monotonic()
        if remaining <= 0:
            return False
        await self._clock.sleep(min(seconds, remaining))
        return self._clock.monotonic() < deadline

    async def _complete(self, org_id: int, job: ReportJob, url: str) -> None:
        try:
            rows = await self._client.download(url)
            job.rows = self._store.upsert_rows(org_id, self._client.source_name, rows)
        except Exception as exc:
            self._fail(job, str(exc) or type(exc).__name__)
            return
        job.state = ReportJobState.COMPLETED
        logger.info(
            "%s: %s completed, %d row(s)", self._client.source_name, job.report_date, job.rows
        )

    def _fail(self, job: ReportJob, message: str | None) -> None:
        job.state = ReportJobState.FAILED
        job.error = message or "Report failed"
        logger.warning("%s: %s failed: %s", self._client.source_name, job.report_date, job.error)

    @staticmethod
    def _abandon(jobs: list[ReportJob], state: ReportJobState) -> None:
        for job in jobs:
            if job.state.is_pending:
                job.state = state


def _job_outcome(job: ReportJob) -> DateOutcome:
    if job.state is ReportJobState.COMPLETED:
        return DateOutcome(job.report_date, DateStatus.SUCCESS, rows=job.rows)
    if job.state is ReportJobState.FAILED:
        return DateOutcome(job.report_date, DateStatus.ERROR, error=job.error)
    if job.state is ReportJobState.STILL_PROCESSING:
        return DateOutcome(job.report_date, DateStatus.STILL_PROCESSING)
    return DateOutcome(job.report_date, DateStatus.TIMEOUT)
