"""Pydantic schemas for sync run responses."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from integrations.source_protocol import DateStatus, SyncStatus


class DateOutcomeResponse(BaseModel):
    """Outcome for one report date."""

    report_date: date
    status: DateStatus
    rows: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SourceSyncResultResponse(BaseModel):
    """Result of syncing one source."""

    status: SyncStatus
    cursor_before: Optional[date] = None
    cursor_after: Optional[date] = None
    dates_synced: int = 0
    errors: list[str] = []
    dates: list[DateOutcomeResponse] = []

    model_config = ConfigDict(from_attributes=True)


class SyncRunResponse(BaseModel):
    """Response for ``POST /api/sync``.

    ``success`` is true only when every source finished ok or was skipped.
    """

    success: bool
    summary: str
    results: dict[str, SourceSyncResultResponse]

    model_config = ConfigDict(from_attributes=True)
