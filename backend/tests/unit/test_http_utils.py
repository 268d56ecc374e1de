"""Tests for the shared HTTP helpers."""

import asyncio
import gzip
import json

import httpx
import pytest

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderRateLimitError,
)
from integrations.http_utils import decode_report, parse_json, raise_for_status, send


def _response(status: int, text: str = "") -> httpx.Response:
    return httpx.Response(status, text=text, request=httpx.Request("GET", "https://api.test/x"))


class TestRaiseForStatus:
    def test_success_passes(self):
        raise_for_status(_response(200), "PostHog", "Query")

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors(self, status):
        with pytest.raises(ProviderAuthError, match=f"HTTP {status}"):
            raise_for_status(_response(status), "PostHog", "Query")

    def test_rate_limit(self):
        with pytest.raises(ProviderRateLimitError) as exc_info:
            raise_for_status(_response(429), "Amazon Ads", "Poll report")
        assert str(exc_info.value) == "Poll report failed: rate limited (HTTP 429)"
        assert exc_info.value.provider_name == "Amazon Ads"
        assert exc_info.value.retriable

    def test_server_error_includes_truncated_body(self):
        with pytest.raises(ProviderAPIError) as exc_info:
            raise_for_status(_response(502, "x" * 1000), "Facebook", "Insights")
        assert exc_info.value.status_code == 502
        assert str(exc_info.value) == f"Insights failed (HTTP 502): {'x' * 300}"
        assert not isinstance(exc_info.value, ProviderRateLimitError)


class TestSend:
    def test_returns_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))

        async def run():
            async with httpx.AsyncClient(transport=transport) as client:
                return await send(client, "GET", "https://api.test/x", "PostHog", "Query")

        assert asyncio.run(run()).json() == {"ok": True}

    def test_transport_error_becomes_connection_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await send(client, "GET", "https://api.test/x", "PostHog", "Query")

        with pytest.raises(ProviderConnectionError, match="Query failed: timed out") as exc_info:
            asyncio.run(run())
        assert exc_info.value.retriable

    def test_http_error_mapped(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401))

        async def run():
            async with httpx.AsyncClient(transport=transport) as client:
                await send(client, "GET", "https://api.test/x", "PostHog", "Query")

        with pytest.raises(ProviderAuthError):
            asyncio.run(run())


class TestDecoding:
    def test_parse_json(self):
        assert parse_json(_response(200, '{"a": 1}'), "PostHog", "Query") == {"a": 1}

    def test_parse_json_invalid(self):
        with pytest.raises(ProviderDataError, match="Query returned invalid JSON"):
            parse_json(_response(200, "<html>"), "PostHog", "Query")

    def test_decode_gzip_report(self):
        content = gzip.compress(json.dumps([{"campaignId": "1"}]).encode())
        assert decode_report(content, "Amazon Ads") == [{"campaignId": "1"}]

    def test_decode_plain_report(self):
        assert decode_report(b'{"x": 2}', "Amazon", compressed=False) == {"x": 2}

    def test_decode_rejects_garbage(self):
        with pytest.raises(ProviderDataError, match="could not be decoded"):
            decode_report(b"not gzip", "Amazon Ads")
