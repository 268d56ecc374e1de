"""Calendar helpers and the injectable clock used by the sync engine.

All cutoff math is done on ``datetime.date`` values, which carry no time
of day and therefore cannot skip or repeat a day across a daylight-saving
change. "Now" only enters through a :class:`Clock`, so every function
here is pure and can be tested with a fixed instant.
"""

import asyncio
import time
from datetime import date, datetime, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from integrations.source_protocol import CutoffPolicy


class Clock(Protocol):
    """Source of wall-clock time, monotonic time and sleeping."""

    def now(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...

    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Clock backed by the real system time and ``asyncio.sleep``."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def local_today(now: datetime, tz_name: str) -> date:
    """Return the calendar date of ``now`` in the given IANA timezone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def cutoff_date(today: date, policy: CutoffPolicy) -> date:
    """Last date a source may be fetched for, given today's date."""
    if policy is CutoffPolicy.YESTERDAY:
        return today - timedelta(days=1)
    return today


def dates_between(start: date, end: date) -> list[date]:
    """Every date from ``start`` through ``end`` inclusive, ascending.

    Returns an empty list when ``start > end``.
    """
    days = (end - start).days
    return [start + timedelta(days=offset) for offset in range(days + 1)]


def lookback_dates(today: date, offsets: list[int]) -> list[date]:
    """Distinct dates ``today - n`` for each offset, ascending."""
    return sorted({today - timedelta(days=offset) for offset in offsets})
