"""Tests for the Amazon Ads report client."""

import asyncio
import gzip
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from integrations.amazon_ads_client import (
    REPORTS_URL,
    TOKEN_URL,
    AmazonAdsClient,
    parse_campaign_row,
)
from integrations.exceptions import ProviderAuthError, ProviderDataError, ProviderRateLimitError
from integrations.source_protocol import RemoteJobStatus

CREDENTIALS = {"client_id": "cid", "client_secret": "sec", "refresh_token": "rt", "profile_id": 123}
SESSION = {**CREDENTIALS, "access_token": "tok"}

SAMPLE_ROW = {
    "date": "2024-05-14",
    "campaignId": 987654321,
    "campaignName": "Brand - Exact",
    "campaignStatus": "ENABLED",
    "impressions": "1520",
    "clicks": 31,
    "cost": 12.345,
    "costPerClick": 0.4,
    "sales7d": "88.9",
    "purchases7d": 4,
}


def _client(handler, requests=None) -> AmazonAdsClient:
    def recording(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)
    return AmazonAdsClient(transport=httpx.MockTransport(recording))


class TestPrepare:
    def test_exchanges_refresh_token(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={"access_token": "tok"}), requests)

        session = asyncio.run(client.prepare(CREDENTIALS))

        assert session == SESSION
        assert str(requests[0].url) == TOKEN_URL
        body = requests[0].content.decode()
        assert "grant_type=refresh_token" in body
        assert "refresh_token=rt" in body

    def test_missing_setting(self):
        client = _client(lambda r: httpx.Response(500))
        with pytest.raises(ProviderAuthError, match="profile_id"):
            asyncio.run(client.prepare({**CREDENTIALS, "profile_id": ""}))

    def test_rejected_token(self):
        client = _client(lambda r: httpx.Response(401, json={"error": "invalid_grant"}))
        with pytest.raises(ProviderAuthError):
            asyncio.run(client.prepare(CREDENTIALS))

    def test_response_without_token(self):
        client = _client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ProviderDataError, match="no access_token"):
            asyncio.run(client.prepare(CREDENTIALS))


class TestCreateJob:
    def test_requests_one_day_report(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={"reportId": "r-1"}), requests)

        report_id = asyncio.run(client.create_job(SESSION, date(2024, 5, 14)))

        assert report_id == "r-1"
        request = requests[0]
        assert str(request.url) == REPORTS_URL
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Amazon-Advertising-API-Scope"] == "123"
        assert request.headers["Content-Type"] == "application/vnd.createasyncreportrequest.v3+json"
        body = json.loads(request.content)
        assert body["startDate"] == body["endDate"] == "2024-05-14"
        assert body["configuration"]["reportTypeId"] == "spCampaigns"
        assert body["configuration"]["timeUnit"] == "DAILY"
        assert "campaignId" in body["configuration"]["columns"]

    def test_missing_report_id(self):
        client = _client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ProviderDataError):
            asyncio.run(client.create_job(SESSION, date(2024, 5, 14)))


class TestPollStatus:
    def test_completed(self):
        client = _client(lambda r: httpx.Response(200, json={
            "status": "COMPLETED", "url": "https://s3.test/report.gz",
        }))
        report = asyncio.run(client.poll_status(SESSION, "r-1"))
        assert report.status is RemoteJobStatus.COMPLETED
        assert report.download_url == "https://s3.test/report.gz"

    def test_failure_reason(self):
        client = _client(lambda r: httpx.Response(200, json={"status": "FAILURE", "failureReason": "Bad dates"}))
        report = asyncio.run(client.poll_status(SESSION, "r-1"))
        assert report.status is RemoteJobStatus.FAILURE
        assert report.failure_reason == "Bad dates"

    def test_unknown_status_is_processing(self):
        client = _client(lambda r: httpx.Response(200, json={"status": "QUEUED"}))
        assert asyncio.run(client.poll_status(SESSION, "r-1")).status is RemoteJobStatus.PROCESSING

    def test_polls_report_url(self):
        requests = []
        client = _client(lambda r: httpx.Response(200, json={"status": "PENDING"}), requests)
        asyncio.run(client.poll_status(SESSION, "r-1"))
        assert str(requests[0].url) == f"{REPORTS_URL}/r-1"

    def test_rate_limited(self):
        client = _client(lambda r: httpx.Response(429))
        with pytest.raises(ProviderRateLimitError):
            asyncio.run(client.poll_status(SESSION, "r-1"))


class TestDownload:
    def test_parses_gzip_rows(self):
        requests = []
        content = gzip.compress(json.dumps([SAMPLE_ROW]).encode())
        client = _client(lambda r: httpx.Response(200, content=content), requests)

        rows = asyncio.run(client.download("https://s3.test/report.gz"))

        assert len(rows) == 1
        assert rows[0].natural_key == {"campaign_id": "987654321"}
        assert "Authorization" not in requests[0].headers

    def test_non_list_payload(self):
        content = gzip.compress(json.dumps({"rows": []}).encode())
        client = _client(lambda r: httpx.Response(200, content=content))
        with pytest.raises(ProviderDataError, match="not a list"):
            asyncio.run(client.download("https://s3.test/report.gz"))


class TestParseCampaignRow:
    def test_coerces_types(self):
        row = parse_campaign_row(SAMPLE_ROW)

        assert row.report_date == date(2024, 5, 14)
        assert row.measures["campaign_name"] == "Brand - Exact"
        assert row.measures["impressions"] == 1520
        assert row.measures["cost"] == Decimal("12.34")
        assert row.measures["sales_7d"] == Decimal("88.90")
        assert row.measures["cost_per_click"] == 0.4
        assert row.measures["purchases_7d"] == 4

    def test_missing_metrics(self):
        row = parse_campaign_row({"date": "2024-05-14", "campaignId": "1"})

        assert row.measures["impressions"] == 0
        assert row.measures["clicks"] == 0
        assert row.measures["cost"] == Decimal("0.00")
        assert row.measures["sales_30d"] is None
        assert row.measures["acos_clicks_14d"] is None

    def test_missing_campaign_id(self):
        with pytest.raises(ProviderDataError):
            parse_campaign_row({"date": "2024-05-14"})
