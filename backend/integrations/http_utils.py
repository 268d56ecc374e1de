"""HTTP helpers shared by the source clients.

Maps ``httpx`` failures onto the typed exception hierarchy so callers can
branch on exception type instead of status codes or message text.
"""

import gzip
import json
import logging

import httpx

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderRateLimitError,
)

logger = logging.getLogger(__name__)

# Response bodies are truncated in error messages
_MAX_ERROR_BODY = 300


def raise_for_status(response: httpx.Response, provider_name: str, action: str) -> None:
    """Raise the matching ProviderError for a non-2xx response."""
    if response.is_success:
        return
    status = response.status_code
    body = response.text[:_MAX_ERROR_BODY]
    if status in (401, 403):
        raise ProviderAuthError(
            f"{action} failed: authentication rejected (HTTP {status})",
            provider_name=provider_name,
        )
    if status == 429:
        raise ProviderRateLimitError(
            f"{action} failed: rate limited (HTTP 429)",
            provider_name=provider_name,
        )
    raise ProviderAPIError(
        f"{action} failed (HTTP {status}): {body}",
        provider_name=provider_name,
        status_code=status,
    )


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider_name: str,
    action: str,
    **kwargs,
) -> httpx.Response:
    """Send a request and return the response, raising typed errors on failure."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        raise ProviderConnectionError(
            f"{action} failed: {str(exc) or type(exc).__name__}",
            provider_name=provider_name,
        ) from exc
    raise_for_status(response, provider_name, action)
    return response


def parse_json(response: httpx.Response, provider_name: str, action: str):
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderDataError(
            f"{action} returned invalid JSON", provider_name=provider_name
        ) from exc


def decode_report(content: bytes, provider_name: str, compressed: bool = True):
    """Decode a (optionally gzip-compressed) JSON report body."""
    try:
        raw = gzip.decompress(content) if compressed else content
        return json.loads(raw.decode("utf-8"))
    except (OSError, ValueError) as exc:
        raise ProviderDataError(
            f"Report could not be decoded: {exc}", provider_name=provider_name
        ) from exc
