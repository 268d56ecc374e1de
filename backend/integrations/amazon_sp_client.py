"""Amazon Selling Partner API client.

Implements the CursorSource protocol for daily sales & traffic by child
ASIN, plus a finances reconciliation step that re-reads recently posted
transactions on every run.

Credentials (per organization): ``client_id``, ``client_secret``,
``refresh_token`` and ``marketplace_id``.
"""

import logging
from datetime import date, datetime, timedelta

import httpx

from config import settings
from integrations.exceptions import ProviderAPIError, ProviderAuthError, ProviderDataError, ProviderRateLimitError
from integrations.http_utils import decode_report, parse_json, send
from integrations.parsing_utils import parse_iso_datetime, to_decimal, to_float, to_int
from integrations.source_protocol import CutoffPolicy, FactRow
from utils.dates import Clock, SystemClock

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Amazon"

TOKEN_URL = "https://api.amazon.com/auth/o2/token"
EU_ENDPOINT = "https://sellingpartnerapi-eu.amazon.com"
REPORTS_PATH = "/reports/2021-06-30"
FINANCES_PATH = "/finances/2024-06-19/transactions"

# The Finances API rejects a postedBefore closer than two minutes to now
POSTED_BEFORE_MARGIN = timedelta(minutes=3)


class AmazonSellingPartnerClient:
    """Async client for the Selling Partner reports and finances APIs."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock | None = None,
        timeout: float | None = None,
        poll_interval: float = 15.0,
        max_polls: int = 12,
        max_retries: int = 5,
    ):
        """Initialize the client.

        Args:
            transport: Optional httpx transport (tests use MockTransport).
            clock: Clock used for report polling and 429 backoff.
            timeout: Per-request timeout in seconds (defaults to settings).
            poll_interval: Seconds between report status checks.
            max_polls: Status checks before giving up on a report.
            max_retries: Retries of a throttled (429) request.
        """
        self._transport = transport
        self._clock = clock or SystemClock()
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._max_retries = max_retries
        self._tokens: dict[str, tuple[str, float]] = {}

    @property
    def source_name(self) -> str:
        return "amazon"

    @property
    def cutoff(self) -> CutoffPolicy:
        return CutoffPolicy.TODAY

    @property
    def reconcile_source(self) -> str | None:
        return "amazon_finances"

    @property
    def reconcile_label(self) -> str:
        return "finances"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _access_token(self, client: httpx.AsyncClient, credentials: dict) -> str:
        """Exchange the refresh token for an access token, cached until near expiry."""
        for key in ("client_id", "client_secret", "refresh_token"):
            if not credentials.get(key):
                raise ProviderAuthError(f"Amazon settings missing '{key}'", provider_name=PROVIDER_NAME)

        cache_key = credentials["refresh_token"]
        cached = self._tokens.get(cache_key)
        if cached and self._clock.monotonic() < cached[1]:
            return cached[0]

        response = await send(
            client, "POST", TOKEN_URL, PROVIDER_NAME, "Amazon token exchange",
            data={
                "grant_type": "refresh_token",
                "refresh_token": credentials["refresh_token"],
                "client_id": credentials["client_id"],
                "client_secret": credentials["client_secret"],
            },
        )
        data = parse_json(response, PROVIDER_NAME, "Amazon token exchange")
        token = data.get("access_token")
        if not token:
            raise ProviderDataError("Token response had no access_token", provider_name=PROVIDER_NAME)
        # Refresh 60s early
        expires_at = self._clock.monotonic() + max(int(data.get("expires_in", 3600)) - 60, 0)
        self._tokens[cache_key] = (token, expires_at)
        return token

    async def _sp_request(
        self,
        client: httpx.AsyncClient,
        credentials: dict,
        method: str,
        path: str,
        action: str,
        **kwargs,
    ) -> httpx.Response:
        """Call the SP-API, backing off on 429 (2s, 4s, 8s ... capped at 60s)."""
        token = await self._access_token(client, credentials)
        url = path if path.startswith("http") else f"{EU_ENDPOINT}{path}"
        headers = {"x-amz-access-token": token, "Content-Type": "application/json"}
        for attempt in range(self._max_retries + 1):
            try:
                return await send(client, method, url, PROVIDER_NAME, action, headers=headers, **kwargs)
            except ProviderRateLimitError:
                if attempt >= self._max_retries:
                    raise
                backoff = min(2.0 * (2 ** attempt), 60.0)
                logger.info(
                    "Amazon: rate limited, retrying in %.0fs (attempt %d/%d)",
                    backoff, attempt + 1, self._max_retries,
                )
                await self._clock.sleep(backoff)
        raise ProviderAPIError(f"{action} failed: retries exhausted", provider_name=PROVIDER_NAME)

    async def fetch_for_date(self, credentials: dict, report_date: date) -> list[FactRow]:
        """Run a one-day sales & traffic report and return a row per child ASIN."""
        day = report_date.isoformat()
        async with self._http() as client:
            created = parse_json(
                await self._sp_request(
                    client, credentials, "POST", f"{REPORTS_PATH}/reports", "Create report",
                    json={
                        "reportType": "GET_SALES_AND_TRAFFIC_REPORT",
                        "marketplaceIds": [credentials.get("marketplace_id", "")],
                        "dataStartTime": f"{day}T00:00:00Z",
                        "dataEndTime": f"{day}T23:59:59Z",
                        "reportOptions": {"dateGranularity": "DAY", "asinGranularity": "CHILD"},
                    },
                ),
                PROVIDER_NAME, "Create report",
            )
            report_id = created.get("reportId")
            if not report_id:
                raise ProviderDataError("Create report returned no reportId", provider_name=PROVIDER_NAME)

            document_id = await self._wait_for_report(client, credentials, report_id)
            document = parse_json(
                await self._sp_request(
                    client, credentials, "GET", f"{REPORTS_PATH}/documents/{document_id}", "Get report document",
                ),
                PROVIDER_NAME, "Get report document",
            )
            download = await send(client, "GET", document["url"], PROVIDER_NAME, "Download report")
            payload = decode_report(
                download.content, PROVIDER_NAME,
                compressed=document.get("compressionAlgorithm") == "GZIP",
            )

        rows = parse_sales_traffic(payload, report_date)
        logger.info("Amazon: %s sales & traffic, %d ASIN row(s)", day, len(rows))
        return rows

    async def _wait_for_report(self, client: httpx.AsyncClient, credentials: dict, report_id: str) -> str:
        for _ in range(self._max_polls):
            await self._clock.sleep(self._poll_interval)
            status = parse_json(
                await self._sp_request(
                    client, credentials, "GET", f"{REPORTS_PATH}/reports/{report_id}", "Report status",
                ),
                PROVIDER_NAME, "Report status",
            )
            processing = status.get("processingStatus")
            if processing == "DONE":
                return status["reportDocumentId"]
            if processing in ("CANCELLED", "FATAL"):
                raise ProviderAPIError(
                    f"Report {report_id} failed: {processing}", provider_name=PROVIDER_NAME
                )
        waited = int(self._poll_interval * self._max_polls)
        raise ProviderAPIError(
            f"Report {report_id} did not complete within {waited}s", provider_name=PROVIDER_NAME
        )

    async def reconcile(self, credentials: dict, now: datetime) -> list[FactRow]:
        """Fetch finance transactions posted in the last few days."""
        posted_before = now - POSTED_BEFORE_MARGIN
        posted_after = now - timedelta(days=settings.FINANCES_RECONCILE_DAYS)
        return await self.fetch_financial_events(credentials, posted_after, posted_before)

    async def fetch_financial_events(
        self,
        credentials: dict,
        posted_after: datetime,
        posted_before: datetime,
    ) -> list[FactRow]:
        """Page through the Finances API transactions between two instants."""
        rows: list[FactRow] = []
        next_token: str | None = None
        async with self._http() as client:
            while True:
                params = {
                    "postedAfter": posted_after.isoformat(),
                    "postedBefore": posted_before.isoformat(),
                }
                if next_token:
                    params["nextToken"] = next_token
                data = parse_json(
                    await self._sp_request(
                        client, credentials, "GET", FINANCES_PATH, "Finances API", params=params,
                    ),
                    PROVIDER_NAME, "Finances API",
                )
                payload = data.get("payload") or data
                for txn in payload.get("transactions") or []:
                    rows.append(parse_transaction(txn, len(rows), posted_before.date()))
                next_token = payload.get("nextToken")
                if not next_token:
                    break
        logger.info("Amazon: %d finance transaction(s) since %s", len(rows), posted_after.date())
        return rows


def parse_sales_traffic(payload: dict, report_date: date) -> list[FactRow]:
    """Map ``salesAndTrafficByAsin`` entries to fact rows.

    The per-ASIN section aggregates across the requested range and has no
    date of its own, so every row is stamped with ``report_date``.
    """
    rows = []
    for entry in payload.get("salesAndTrafficByAsin") or []:
        sales = entry.get("salesByAsin") or {}
        traffic = entry.get("trafficByAsin") or {}
        rows.append(
            FactRow(
                natural_key={"child_asin": str(entry.get("childAsin") or "")},
                report_date=report_date,
                measures={
                    "parent_asin": str(entry.get("parentAsin") or ""),
                    "units_ordered": to_int(sales.get("unitsOrdered")),
                    "units_ordered_b2b": to_int(sales.get("unitsOrderedB2B")),
                    "ordered_product_sales": to_decimal(
                        (sales.get("orderedProductSales") or {}).get("amount", 0)
                    ),
                    "ordered_product_sales_b2b": to_decimal(
                        (sales.get("orderedProductSalesB2B") or {}).get("amount", 0)
                    ),
                    "total_order_items": to_int(sales.get("totalOrderItems")),
                    "total_order_items_b2b": to_int(sales.get("totalOrderItemsB2B")),
                    "browser_sessions": to_int(traffic.get("browserSessions")),
                    "mobile_sessions": to_int(traffic.get("mobileAppSessions")),
                    "sessions": to_int(traffic.get("sessions")),
                    "browser_page_views": to_int(traffic.get("browserPageViews")),
                    "mobile_page_views": to_int(traffic.get("mobileAppPageViews")),
                    "page_views": to_int(traffic.get("pageViews")),
                    "session_percentage": to_float(traffic.get("sessionPercentage")),
                    "page_views_percentage": to_float(traffic.get("pageViewsPercentage")),
                    "buy_box_percentage": to_float(traffic.get("buyBoxPercentage")),
                    "unit_session_percentage": to_float(traffic.get("unitSessionPercentage")),
                    "unit_session_percentage_b2b": to_float(traffic.get("unitSessionPercentageB2B")),
                },
            )
        )
    return rows


def parse_transaction(txn: dict, index: int, fallback_date: date) -> FactRow:
    """Map one Finances API transaction to a fact row keyed by transaction id."""
    posted_at = parse_iso_datetime(txn.get("postedDate"))
    transaction_type = txn.get("transactionType") or ""
    transaction_id = txn.get("transactionId") or f"txn-{txn.get('postedDate', '')}-{transaction_type}-{index}"
    total = txn.get("totalAmount") or {}
    return FactRow(
        natural_key={"transaction_id": transaction_id},
        report_date=posted_at.date() if posted_at else fallback_date,
        measures={
            "posted_at": posted_at.replace(tzinfo=None) if posted_at else None,
            "transaction_type": transaction_type,
            "total_amount": to_decimal(total.get("amount", 0)),
            "total_currency": total.get("currencyCode") or "GBP",
            "related_identifiers": txn.get("relatedIdentifiers") or [],
            "items": txn.get("items") or [],
            "breakdowns": txn.get("breakdowns") or [],
        },
    )
