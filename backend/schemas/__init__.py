"""Pydantic schemas for API request/response validation."""

from .sync import DateOutcomeResponse, SourceSyncResultResponse, SyncRunResponse

__all__ = ["DateOutcomeResponse", "SourceSyncResultResponse", "SyncRunResponse"]
