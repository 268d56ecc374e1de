"""Tests for gap detection."""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from integrations.exceptions import CursorQueryFailed
from integrations.source_protocol import CutoffPolicy
from services.gap_service import GapService, compute_gap_window
from tests.fixtures import ORG_ID, OTHER_ORG_ID, seed_posthog
from tests.fixtures.mocks import FakeClock


class TestComputeGapWindow:
    def test_cursor_to_today(self):
        gap = compute_gap_window(date(2024, 5, 10), date(2024, 5, 15), date(2024, 5, 15), 30)
        assert gap.from_date == date(2024, 5, 11)
        assert gap.to_date == date(2024, 5, 15)
        assert len(gap.dates) == 5
        assert gap.dates[0] == date(2024, 5, 11)
        assert gap.dates[-1] == date(2024, 5, 15)
        assert gap.cursor == date(2024, 5, 10)

    def test_bootstrap_without_cursor(self):
        gap = compute_gap_window(None, date(2024, 6, 1), date(2024, 6, 1), 30)
        assert gap.from_date == date(2024, 5, 2)
        assert gap.to_date == date(2024, 6, 1)
        assert len(gap.dates) == 31
        assert gap.cursor is None

    def test_bootstrap_with_yesterday_cutoff(self):
        gap = compute_gap_window(None, date(2024, 5, 31), date(2024, 6, 1), 30)
        assert gap.dates[0] == date(2024, 5, 2)
        assert gap.dates[-1] == date(2024, 5, 31)
        assert len(gap.dates) == 30

    def test_empty_when_cursor_at_cutoff(self):
        gap = compute_gap_window(date(2024, 5, 15), date(2024, 5, 15), date(2024, 5, 15), 30)
        assert gap.is_empty
        assert gap.dates == ()

    def test_empty_when_cursor_past_cutoff(self):
        """A cursor beyond a yesterday cutoff never produces a reversed range."""
        gap = compute_gap_window(date(2024, 5, 15), date(2024, 5, 14), date(2024, 5, 15), 30)
        assert gap.is_empty

    def test_never_includes_cursor_or_earlier(self):
        cursor = date(2024, 5, 1)
        gap = compute_gap_window(cursor, date(2024, 5, 15), date(2024, 5, 15), 30)
        assert all(d > cursor for d in gap.dates)


class TestGapService:
    def test_reads_cursor_from_store(self, store, clock):
        seed_posthog(store, ORG_ID, date(2024, 5, 9), date(2024, 5, 10))
        gap = GapService(store, clock).compute_gap(ORG_ID, "posthog", CutoffPolicy.TODAY)
        assert gap.cursor == date(2024, 5, 10)
        assert gap.dates == tuple(date(2024, 5, d) for d in range(11, 16))

    def test_yesterday_cutoff(self, store, clock):
        seed_posthog(store, ORG_ID, date(2024, 5, 10))
        gap = GapService(store, clock).compute_gap(ORG_ID, "posthog", CutoffPolicy.YESTERDAY)
        assert gap.dates[-1] == date(2024, 5, 14)

    def test_cursor_is_per_organization(self, store, clock):
        seed_posthog(store, OTHER_ORG_ID, date(2024, 5, 14))
        gap = GapService(store, clock, bootstrap_days=30).compute_gap(ORG_ID, "posthog", CutoffPolicy.TODAY)
        assert gap.cursor is None
        assert len(gap.dates) == 31

    def test_today_uses_configured_timezone(self, store):
        clock = FakeClock(datetime(2024, 5, 15, 23, 30, tzinfo=timezone.utc))
        assert GapService(store, clock, timezone_name="Europe/London").today() == date(2024, 5, 16)
        assert GapService(store, clock, timezone_name="UTC").today() == date(2024, 5, 15)

    def test_cursor_query_failure_propagates(self, clock):
        store = MagicMock()
        store.max_date.side_effect = CursorQueryFailed("posthog", RuntimeError("db down"))
        with pytest.raises(CursorQueryFailed):
            GapService(store, clock).compute_gap(ORG_ID, "posthog", CutoffPolicy.TODAY)
