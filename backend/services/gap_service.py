"""Gap detection for cursor-based sources."""

import logging
from datetime import date, timedelta

from config import settings
from integrations.source_protocol import CutoffPolicy, Gap
from services.fact_store import FactStore
from utils.dates import Clock, SystemClock, cutoff_date, dates_between, local_today

logger = logging.getLogger(__name__)


def compute_gap_window(
    cursor: date | None,
    cutoff: date,
    today: date,
    bootstrap_days: int,
) -> Gap:
    """Compute the dates still missing after ``cursor`` through ``cutoff``.

    With no cursor the window starts ``bootstrap_days`` before ``today``.
    The result never contains the cursor date or anything earlier, and is
    empty when the cursor has already reached the cutoff.
    """
    if cursor is not None:
        from_date = cursor + timedelta(days=1)
    else:
        from_date = today - timedelta(days=bootstrap_days)
    return Gap(
        from_date=from_date,
        to_date=cutoff,
        dates=tuple(dates_between(from_date, cutoff)),
        cursor=cursor,
    )


class GapService:
    """Reads a source's cursor and turns it into a gap of dates to fetch."""

    def __init__(
        self,
        store: FactStore,
        clock: Clock | None = None,
        timezone_name: str | None = None,
        bootstrap_days: int | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._timezone_name = timezone_name or settings.SYNC_TIMEZONE
        self._bootstrap_days = (
            settings.BOOTSTRAP_LOOKBACK_DAYS if bootstrap_days is None else bootstrap_days
        )

    def today(self) -> date:
        return local_today(self._clock.now(), self._timezone_name)

    def compute_gap(self, org_id: int, source: str, cutoff: CutoffPolicy) -> Gap:
        """Compute the gap for one organization and source.

        Raises:
            CursorQueryFailed: If the cursor cannot be read.
        """
        cursor = self._store.max_date(org_id, source)
        today = self.today()
        gap = compute_gap_window(
            cursor, cutoff_date(today, cutoff), today, self._bootstrap_days
        )
        if gap.is_empty:
            logger.debug("%s: up to date through %s (org %s)", source, cursor, org_id)
        else:
            logger.info(
                "%s: %d date(s) to sync, %s..%s (org %s)",
                source, len(gap.dates), gap.from_date, gap.to_date, org_id,
            )
        return gap
