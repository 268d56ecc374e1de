"""Tests for the sync orchestrator."""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy import select

from integrations.exceptions import CursorQueryFailed, SettingsDecryptError
from integrations.source_protocol import CutoffPolicy, SourceSyncResult, SyncStatus
from models import PosthogAnalytics
from services.report_job_engine import EngineConfig
from services.sync_service import UP_TO_DATE_MESSAGE, SyncService, build_summary
from tests.fixtures import ORG_ID, seed_posthog
from tests.fixtures.mocks import (
    FakeCredentialsProvider,
    MockCursorSource,
    MockReportJobClient,
    ads_row,
    facebook_row,
    make_registry,
    posthog_row,
)


def _service(store, clock, credentials, *sources) -> SyncService:
    return SyncService(
        source_registry=make_registry(*sources),
        store=store,
        credentials=credentials,
        clock=clock,
        engine_config=EngineConfig(),
    )


class TestBuildSummary:
    def test_lists_sources_with_synced_days(self):
        results = {
            "amazon": SourceSyncResult.build(None, None, 1),
            "facebook": SourceSyncResult.build(None, None, 3),
            "posthog": SourceSyncResult.build(None, None, 0),
            "amazon_ads": SourceSyncResult.skipped(),
        }
        labels = {"amazon": "Amazon", "facebook": "Facebook", "posthog": "PostHog"}
        assert build_summary(results, labels) == "Amazon: 1 day, Facebook: 3 days"

    def test_up_to_date_when_nothing_synced(self):
        results = {"posthog": SourceSyncResult.build(None, None, 0)}
        assert build_summary(results) == UP_TO_DATE_MESSAGE

    def test_partial_sources_still_listed(self):
        results = {"facebook": SourceSyncResult.build(None, None, 2, errors=["2024-05-13: Timeout"])}
        assert build_summary(results, {"facebook": "Facebook"}) == "Facebook: 2 days"


class TestRunSync:
    def test_all_sources_synced(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog", cutoff=CutoffPolicy.YESTERDAY)
        facebook = MockCursorSource("facebook", row_factory=lambda d: [facebook_row(d)])
        ads = MockReportJobClient("amazon_ads")
        seed_posthog(store, ORG_ID, date(2024, 5, 10))
        service = _service(store, clock, fake_credentials, posthog, facebook, ads)

        summary = asyncio.run(service.run_sync(ORG_ID))

        assert summary.success is True
        assert set(summary.results) == {"posthog", "facebook", "amazon_ads"}
        assert summary.results["posthog"].dates_synced == 4
        assert summary.results["posthog"].cursor_after == date(2024, 5, 14)
        assert summary.results["facebook"].dates_synced == 31
        assert summary.results["amazon_ads"].dates_synced == 5
        assert summary.summary == "PostHog: 4 days, Facebook: 31 days, Amazon Ads: 5 days"
        assert posthog.credentials_seen[0] == {"api_key": "phx", "project_id": "1"}

    def test_missing_settings_is_skipped_but_successful(self, store, clock):
        posthog = MockCursorSource("posthog")
        facebook = MockCursorSource("facebook", row_factory=lambda d: [facebook_row(d)])
        credentials = FakeCredentialsProvider({(ORG_ID, "facebook"): {"access_token": "fb", "ad_account_id": "1"}})
        seed_posthog(store, ORG_ID, date(2024, 5, 12))
        service = _service(store, clock, credentials, posthog, facebook)

        summary = asyncio.run(service.run_sync(ORG_ID))

        skipped = summary.results["posthog"]
        assert skipped.status is SyncStatus.SKIPPED
        assert skipped.errors == ("No settings configured",)
        assert skipped.cursor_before == date(2024, 5, 12)
        assert posthog.fetched == []
        assert summary.results["facebook"].status is SyncStatus.OK
        assert summary.success is True
        assert summary.summary == "Facebook: 31 days"

    def test_partial_source_makes_run_unsuccessful(self, store, clock, fake_credentials):
        facebook = MockCursorSource(
            "facebook",
            row_factory=lambda d: [facebook_row(d)],
            failures={date(2024, 5, 13): RuntimeError("Timeout")},
        )
        service = _service(store, clock, fake_credentials, facebook)

        summary = asyncio.run(service.run_sync(ORG_ID))

        assert summary.success is False
        assert summary.results["facebook"].status is SyncStatus.PARTIAL
        assert "2024-05-13: Timeout" in summary.results["facebook"].errors

    def test_up_to_date_run(self, store, clock, fake_credentials):
        seed_posthog(store, ORG_ID, date(2024, 5, 15))
        posthog = MockCursorSource("posthog")
        summary = asyncio.run(_service(store, clock, fake_credentials, posthog).run_sync(ORG_ID))

        assert summary.success is True
        assert summary.summary == UP_TO_DATE_MESSAGE
        assert posthog.fetched == []

    def test_decrypt_failure_is_source_error(self, store, clock):
        credentials = FakeCredentialsProvider(errors={(ORG_ID, "posthog"): SettingsDecryptError("Authentication tag mismatch")})
        posthog = MockCursorSource("posthog")
        summary = asyncio.run(_service(store, clock, credentials, posthog).run_sync(ORG_ID))

        result = summary.results["posthog"]
        assert result.status is SyncStatus.ERROR
        assert result.errors == ("Settings decrypt failed: Authentication tag mismatch",)
        assert posthog.fetched == []
        assert summary.success is False

    def test_cursor_query_failure_is_source_error(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        facebook = MockCursorSource("facebook", row_factory=lambda d: [facebook_row(d)])
        real_max_date = store.max_date

        def max_date(org_id, source):
            if source == "posthog":
                raise CursorQueryFailed(source, RuntimeError("relation does not exist"))
            return real_max_date(org_id, source)

        with patch.object(store, "max_date", side_effect=max_date):
            summary = asyncio.run(_service(store, clock, fake_credentials, posthog, facebook).run_sync(ORG_ID))

        assert summary.results["posthog"].errors == ("DB query failed: relation does not exist",)
        assert summary.results["facebook"].status is SyncStatus.OK

    def test_unexpected_exception_is_contained(self, store, clock, fake_credentials):
        broken = MockCursorSource("no_such_table")
        posthog = MockCursorSource("posthog")
        summary = asyncio.run(_service(store, clock, fake_credentials, broken, posthog).run_sync(ORG_ID))

        assert summary.results["no_such_table"].status is SyncStatus.ERROR
        assert "no_such_table" in summary.results["no_such_table"].errors[0]
        assert summary.results["posthog"].status is SyncStatus.OK
        assert summary.success is False

    def test_sources_run_concurrently(self, store, clock, fake_credentials):
        facebook_started = asyncio.Event()

        class WaitingSource(MockCursorSource):
            async def fetch_for_date(self, credentials, report_date):
                await asyncio.wait_for(facebook_started.wait(), timeout=1)
                return await super().fetch_for_date(credentials, report_date)

        class SignallingSource(MockCursorSource):
            async def fetch_for_date(self, credentials, report_date):
                facebook_started.set()
                await asyncio.sleep(0)
                return await super().fetch_for_date(credentials, report_date)

        seed_posthog(store, ORG_ID, date(2024, 5, 14))
        posthog = WaitingSource("posthog")
        facebook = SignallingSource("facebook", row_factory=lambda d: [facebook_row(d)])

        service = _service(store, clock, fake_credentials, posthog, facebook)
        summary = asyncio.run(service.run_sync(ORG_ID))

        assert summary.results["posthog"].status is SyncStatus.OK
        assert summary.results["facebook"].status is SyncStatus.OK

    def test_report_job_source_uses_engine(self, store, clock, fake_credentials):
        ads = MockReportJobClient("amazon_ads")
        with patch("services.report_job_engine.settings") as mock_settings:
            mock_settings.ADS_LOOKBACK_OFFSETS = [1, 2]
            summary = asyncio.run(_service(store, clock, fake_credentials, ads).run_sync(ORG_ID))

        result = summary.results["amazon_ads"]
        assert result.dates_synced == 2
        assert result.cursor_after == date(2024, 5, 14)
        assert ads.count("prepare") == 1

    def test_organizations_are_isolated(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        seed_posthog(store, ORG_ID, date(2024, 5, 15))
        summary = asyncio.run(_service(store, clock, fake_credentials, posthog).run_sync(99))

        # org 99 has no settings even though org 42 does
        assert summary.results["posthog"].status is SyncStatus.SKIPPED
        assert summary.results["posthog"].cursor_before is None

    def test_unexpected_error_keeps_cursor(self, store, clock):
        posthog = MockCursorSource("posthog")
        seed_posthog(store, ORG_ID, date(2024, 5, 10))
        credentials = FakeCredentialsProvider(errors={(ORG_ID, "posthog"): RuntimeError("vault offline")})

        summary = asyncio.run(_service(store, clock, credentials, posthog).run_sync(ORG_ID))

        result = summary.results["posthog"]
        assert result.status is SyncStatus.ERROR
        assert result.errors == ("vault offline",)
        assert result.cursor_before == date(2024, 5, 10)
        assert posthog.fetched == []


class TestBackfillRange:
    START = date(2024, 5, 1)
    END = date(2024, 5, 5)

    def test_skips_stored_dates(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        seed_posthog(store, ORG_ID, date(2024, 5, 2), date(2024, 5, 4))
        service = _service(store, clock, fake_credentials, posthog)

        result = asyncio.run(service.backfill_range(ORG_ID, "posthog", self.START, self.END))

        assert posthog.fetched == [date(2024, 5, 1), date(2024, 5, 3), date(2024, 5, 5)]
        assert result.status is SyncStatus.OK
        assert result.dates_synced == 3
        assert result.cursor_before == date(2024, 5, 4)
        assert result.cursor_after == date(2024, 5, 5)

    def test_force_refetches_stored_dates(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog", row_factory=lambda d: [posthog_row(d, visitors=250)])
        seed_posthog(store, ORG_ID, date(2024, 5, 2), date(2024, 5, 4))
        service = _service(store, clock, fake_credentials, posthog)

        result = asyncio.run(service.backfill_range(ORG_ID, "posthog", self.START, self.END, force=True))

        assert posthog.fetched == [date(2024, 5, d) for d in range(1, 6)]
        assert result.dates_synced == 5
        with store.session_factory() as session:
            visitors = session.execute(
                select(PosthogAnalytics.unique_visitors).where(PosthogAnalytics.date == date(2024, 5, 2))
            ).scalar_one()
        assert visitors == 250

    def test_range_may_cover_dates_behind_cursor(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        seed_posthog(store, ORG_ID, date(2024, 5, 14))
        service = _service(store, clock, fake_credentials, posthog)

        result = asyncio.run(service.backfill_range(ORG_ID, "posthog", date(2024, 3, 1), date(2024, 3, 2)))

        assert posthog.fetched == [date(2024, 3, 1), date(2024, 3, 2)]
        assert result.cursor_after == date(2024, 5, 14)

    def test_fully_stored_range_fetches_nothing(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        seed_posthog(store, ORG_ID, self.START, self.END)
        service = _service(store, clock, fake_credentials, posthog)

        result = asyncio.run(service.backfill_range(ORG_ID, "posthog", self.END, self.END))

        assert posthog.fetched == []
        assert result.dates_synced == 0
        assert result.status is SyncStatus.OK

    def test_report_job_source(self, store, clock, fake_credentials):
        ads = MockReportJobClient("amazon_ads")
        store.upsert_rows(ORG_ID, "amazon_ads", [ads_row(date(2024, 5, 3))])
        service = _service(store, clock, fake_credentials, ads)

        result = asyncio.run(service.backfill_range(ORG_ID, "amazon_ads", self.START, self.END))

        assert ads.count("create") == 4
        assert result.dates_synced == 4
        assert result.cursor_before == date(2024, 5, 3)
        assert result.cursor_after == date(2024, 5, 5)

    def test_report_job_source_forced(self, store, clock, fake_credentials):
        ads = MockReportJobClient("amazon_ads")
        store.upsert_rows(ORG_ID, "amazon_ads", [ads_row(date(2024, 5, 3))])
        service = _service(store, clock, fake_credentials, ads)

        result = asyncio.run(service.backfill_range(ORG_ID, "amazon_ads", self.START, self.END, force=True))

        assert ads.count("create") == 5
        assert result.dates_synced == 5

    def test_missing_settings_skipped(self, store, clock):
        posthog = MockCursorSource("posthog")
        service = _service(store, clock, FakeCredentialsProvider(), posthog)

        result = asyncio.run(service.backfill_range(ORG_ID, "posthog", self.START, self.END))

        assert result.status is SyncStatus.SKIPPED
        assert posthog.fetched == []

    def test_existing_dates_query_failure(self, store, clock, fake_credentials):
        posthog = MockCursorSource("posthog")
        service = _service(store, clock, fake_credentials, posthog)
        failure = CursorQueryFailed("posthog", RuntimeError("relation does not exist"))

        with patch.object(store, "existing_dates", side_effect=failure):
            result = asyncio.run(service.backfill_range(ORG_ID, "posthog", self.START, self.END))

        assert result.status is SyncStatus.ERROR
        assert result.errors == ("DB query failed: relation does not exist",)
        assert posthog.fetched == []

    def test_start_after_end_rejected(self, store, clock, fake_credentials):
        service = _service(store, clock, fake_credentials, MockCursorSource("posthog"))
        with pytest.raises(ValueError, match="is after end"):
            asyncio.run(service.backfill_range(ORG_ID, "posthog", self.END, self.START))

    def test_unknown_source_rejected(self, store, clock, fake_credentials):
        service = _service(store, clock, fake_credentials, MockCursorSource("posthog"))
        with pytest.raises(ValueError, match="not registered"):
            asyncio.run(service.backfill_range(ORG_ID, "tiktok", self.START, self.END))
