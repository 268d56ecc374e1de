"""Source protocol definitions for multi-source daily sync.

This module defines the value types that flow through a sync run and the
interfaces that every reporting source (Amazon, Facebook, PostHog, Amazon
Ads) must implement to work with the sync engine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class SyncStatus(str, Enum):
    """Outcome of one source's sync for one organization."""

    OK = "ok"
    PARTIAL = "partial"
    ERROR = "error"
    SKIPPED = "skipped"


class DateStatus(str, Enum):
    """Outcome for a single report date."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    STILL_PROCESSING = "still_processing"
    SKIPPED = "skipped"


class CutoffPolicy(str, Enum):
    """Last calendar date a cursor source may be fetched for."""

    TODAY = "today"  # API returns empty rows for an unfinished day
    YESTERDAY = "yesterday"  # today is always incomplete


@dataclass(frozen=True)
class FactRow:
    """Normalized fact row produced by any source.

    The store keys the row on (organization, natural_key, report_date).
    """

    natural_key: dict[str, Any]  # e.g. {"child_asin": "B000123"}
    report_date: date
    measures: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Gap:
    """Contiguous dates still missing for a source, in ascending order."""

    from_date: date
    to_date: date
    dates: tuple[date, ...] = ()
    cursor: date | None = None  # latest persisted date when the gap was computed

    @property
    def is_empty(self) -> bool:
        return not self.dates


@dataclass(frozen=True)
class DateOutcome:
    """Per-date breakdown entry attached to a SourceSyncResult."""

    report_date: date
    status: DateStatus
    rows: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class SourceSyncResult:
    """Result of syncing one source for one organization.

    Immutable once built. Use the classmethods so ``status`` is always
    derived the same way.
    """

    status: SyncStatus
    cursor_before: date | None = None
    cursor_after: date | None = None
    dates_synced: int = 0
    errors: tuple[str, ...] = ()
    dates: tuple[DateOutcome, ...] = ()

    @staticmethod
    def derive_status(dates_synced: int, errors: list[str] | tuple[str, ...]) -> SyncStatus:
        """ok with no errors, partial when some dates landed, else error."""
        if not errors:
            return SyncStatus.OK
        if dates_synced > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.ERROR

    @classmethod
    def build(
        cls,
        cursor_before: date | None,
        cursor_after: date | None,
        dates_synced: int,
        errors: list[str] | tuple[str, ...] = (),
        dates: list[DateOutcome] | tuple[DateOutcome, ...] = (),
    ) -> "SourceSyncResult":
        return cls(
            status=cls.derive_status(dates_synced, errors),
            cursor_before=cursor_before,
            cursor_after=cursor_after,
            dates_synced=dates_synced,
            errors=tuple(errors),
            dates=tuple(dates),
        )

    @classmethod
    def skipped(cls, cursor_before: date | None = None) -> "SourceSyncResult":
        return cls(
            status=SyncStatus.SKIPPED,
            cursor_before=cursor_before,
            cursor_after=cursor_before,
            errors=("No settings configured",),
        )

    @classmethod
    def failed(cls, message: str, cursor_before: date | None = None) -> "SourceSyncResult":
        """A precondition failed before any date was attempted."""
        return cls(
            status=SyncStatus.ERROR,
            cursor_before=cursor_before,
            cursor_after=cursor_before,
            errors=(message,),
        )


class RemoteJobStatus(str, Enum):
    """Status reported by the remote platform for a report job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class JobStatusReport:
    """One status check of a remote report job."""

    status: RemoteJobStatus
    download_url: str | None = None
    failure_reason: str | None = None


class ReportJobState(str, Enum):
    """Local lifecycle of a report job within one run."""

    REQUESTED = "requested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"  # abandoned at the deadline
    STILL_PROCESSING = "still_processing"  # abandoned after a rate-limit signal

    @property
    def is_pending(self) -> bool:
        return self in (ReportJobState.REQUESTED, ReportJobState.PROCESSING)


@dataclass
class ReportJob:
    """An in-flight asynchronous report request for one date.

    Owned and mutated only by the job engine during a single run; never
    persisted.
    """

    report_date: date
    remote_job_id: str | None = None
    state: ReportJobState = ReportJobState.REQUESTED
    rows: int = 0
    error: str | None = None


class CursorSource(Protocol):
    """Protocol for sources that can fetch a single day synchronously.

    Any new cursor-based source must implement these members.
    """

    @property
    def source_name(self) -> str:
        """Return the store key for this source (e.g. 'amazon')."""
        ...

    @property
    def cutoff(self) -> CutoffPolicy:
        ...

    @property
    def reconcile_source(self) -> str | None:
        """Store key written by :meth:`reconcile`, or None if the source has no reconciliation step."""
        ...

    @property
    def reconcile_label(self) -> str:
        """Prefix for reconciliation errors (e.g. 'finances')."""
        ...

    async def fetch_for_date(self, credentials: dict, report_date: date) -> list[FactRow]:
        """Fetch every row for exactly one calendar date.

        Raises:
            ProviderError: If the source API call fails.
        """
        ...

    async def reconcile(self, credentials: dict, now: datetime) -> list[FactRow]:
        """Fetch a short trailing window of late-arriving records."""
        ...


@runtime_checkable
class ReportJobClient(Protocol):
    """Protocol for sources that extract reports asynchronously."""

    @property
    def source_name(self) -> str:
        ...

    async def prepare(self, credentials: dict) -> dict:
        """Authenticate once per run and return credentials for the calls below."""
        ...

    async def create_job(self, credentials: dict, report_date: date) -> str:
        """Request a report for one date and return the remote job id."""
        ...

    async def poll_status(self, credentials: dict, remote_job_id: str) -> JobStatusReport:
        """Check a job's status.

        Raises:
            ProviderRateLimitError: If the platform is throttling.
        """
        ...

    async def download(self, url: str) -> list[FactRow]:
        """Download and parse a completed report."""
        ...
