"""External API integrations.

This package contains:
- Source protocol: value types and interfaces shared by all sources
- Source registry: tracks the source clients synced each run
- Clients for Amazon Selling Partner, Amazon Ads, Facebook and PostHog
"""

from integrations.source_protocol import (
    CursorSource,
    FactRow,
    ReportJobClient,
    SourceSyncResult,
)
from integrations.source_registry import SourceRegistry, get_source_registry

__all__ = [
    "CursorSource",
    "FactRow",
    "ReportJobClient",
    "SourceRegistry",
    "SourceSyncResult",
    "get_source_registry",
]
