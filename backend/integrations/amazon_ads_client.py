"""Amazon Advertising API client.

Implements the ReportJobClient protocol: Sponsored Products campaign
reports are created asynchronously, polled until COMPLETED, then
downloaded as gzip-compressed JSON.

Credentials (per organization): ``client_id``, ``client_secret``,
``refresh_token`` and ``profile_id``.
"""

import logging
from datetime import date

import httpx

from config import settings
from integrations.exceptions import ProviderAuthError, ProviderDataError
from integrations.http_utils import decode_report, parse_json, send
from integrations.parsing_utils import parse_date, to_decimal, to_float, to_int
from integrations.source_protocol import FactRow, JobStatusReport, RemoteJobStatus

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Amazon Ads"

TOKEN_URL = "https://api.amazon.co.uk/auth/o2/token"
REPORTS_URL = "https://advertising-api-eu.amazon.com/reporting/reports"
CREATE_REPORT_CONTENT_TYPE = "application/vnd.createasyncreportrequest.v3+json"

# Report column -> amazon_sp_ads column
COLUMN_MAP: dict[str, str] = {
    "campaignName": "campaign_name",
    "campaignStatus": "campaign_status",
    "campaignBudgetAmount": "campaign_budget_amount",
    "campaignBudgetType": "campaign_budget_type",
    "campaignBudgetCurrencyCode": "campaign_budget_currency_code",
    "campaignBiddingStrategy": "campaign_bidding_strategy",
    "impressions": "impressions",
    "clicks": "clicks",
    "cost": "cost",
    "spend": "spend",
    "costPerClick": "cost_per_click",
    "clickThroughRate": "click_through_rate",
    "topOfSearchImpressionShare": "top_of_search_impression_share",
    "sales1d": "sales_1d",
    "sales7d": "sales_7d",
    "sales14d": "sales_14d",
    "sales30d": "sales_30d",
    "purchases1d": "purchases_1d",
    "purchases7d": "purchases_7d",
    "purchases14d": "purchases_14d",
    "purchases30d": "purchases_30d",
    "unitsSoldClicks1d": "units_sold_clicks_1d",
    "unitsSoldClicks7d": "units_sold_clicks_7d",
    "unitsSoldClicks14d": "units_sold_clicks_14d",
    "unitsSoldClicks30d": "units_sold_clicks_30d",
    "acosClicks14d": "acos_clicks_14d",
    "roasClicks14d": "roas_clicks_14d",
    "addToList": "add_to_list",
}

_MONEY_COLUMNS = frozenset({
    "campaign_budget_amount", "cost", "spend", "sales_1d", "sales_7d", "sales_14d", "sales_30d",
})
_COUNT_COLUMNS = frozenset({
    "impressions", "clicks", "purchases_1d", "purchases_7d", "purchases_14d", "purchases_30d",
    "units_sold_clicks_1d", "units_sold_clicks_7d", "units_sold_clicks_14d",
    "units_sold_clicks_30d", "add_to_list",
})
_RATIO_COLUMNS = frozenset({
    "cost_per_click", "click_through_rate", "top_of_search_impression_share",
    "acos_clicks_14d", "roas_clicks_14d",
})

REPORT_COLUMNS = ["date", "campaignId", *COLUMN_MAP]


class AmazonAdsClient:
    """Async client for Amazon Ads v3 asynchronous reports."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self._transport = transport
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @property
    def source_name(self) -> str:
        return "amazon_ads"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    @staticmethod
    def _headers(credentials: dict) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credentials['access_token']}",
            "Amazon-Advertising-API-ClientId": credentials["client_id"],
            "Amazon-Advertising-API-Scope": str(credentials["profile_id"]),
        }

    async def prepare(self, credentials: dict) -> dict:
        """Exchange the refresh token and return credentials with an access token."""
        for key in ("client_id", "client_secret", "refresh_token", "profile_id"):
            if not credentials.get(key):
                raise ProviderAuthError(f"Amazon Ads settings missing '{key}'", provider_name=PROVIDER_NAME)

        async with self._http() as client:
            response = await send(
                client, "POST", TOKEN_URL, PROVIDER_NAME, "Amazon Ads token exchange",
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": credentials["refresh_token"],
                    "client_id": credentials["client_id"],
                    "client_secret": credentials["client_secret"],
                },
            )
        data = parse_json(response, PROVIDER_NAME, "Amazon Ads token exchange")
        if not data.get("access_token"):
            raise ProviderDataError("Token response had no access_token", provider_name=PROVIDER_NAME)
        return {**credentials, "access_token": data["access_token"]}

    async def create_job(self, credentials: dict, report_date: date) -> str:
        """Request a one-day spCampaigns report and return its report id."""
        day = report_date.isoformat()
        async with self._http() as client:
            response = await send(
                client, "POST", REPORTS_URL, PROVIDER_NAME, "Create report",
                headers={**self._headers(credentials), "Content-Type": CREATE_REPORT_CONTENT_TYPE},
                json={
                    "name": f"spCampaigns {day}",
                    "startDate": day,
                    "endDate": day,
                    "configuration": {
                        "adProduct": "SPONSORED_PRODUCTS",
                        "groupBy": ["campaign"],
                        "columns": REPORT_COLUMNS,
                        "reportTypeId": "spCampaigns",
                        "timeUnit": "DAILY",
                        "format": "GZIP_JSON",
                    },
                },
            )
        report_id = parse_json(response, PROVIDER_NAME, "Create report").get("reportId")
        if not report_id:
            raise ProviderDataError("Create report returned no reportId", provider_name=PROVIDER_NAME)
        logger.debug("Amazon Ads: requested report %s for %s", report_id, day)
        return str(report_id)

    async def poll_status(self, credentials: dict, remote_job_id: str) -> JobStatusReport:
        """Check one report. HTTP 429 raises ProviderRateLimitError."""
        async with self._http() as client:
            response = await send(
                client, "GET", f"{REPORTS_URL}/{remote_job_id}", PROVIDER_NAME, "Poll report",
                headers=self._headers(credentials),
            )
        data = parse_json(response, PROVIDER_NAME, "Poll report")
        try:
            status = RemoteJobStatus(data.get("status"))
        except ValueError:
            status = RemoteJobStatus.PROCESSING
        return JobStatusReport(
            status=status,
            download_url=data.get("url"),
            failure_reason=data.get("failureReason"),
        )

    async def download(self, url: str) -> list[FactRow]:
        """Download a completed report (pre-signed URL, no auth headers)."""
        async with self._http() as client:
            response = await send(client, "GET", url, PROVIDER_NAME, "Download report")
        payload = decode_report(response.content, PROVIDER_NAME)
        if not isinstance(payload, list):
            raise ProviderDataError("Report payload is not a list", provider_name=PROVIDER_NAME)
        return [parse_campaign_row(row) for row in payload]


def parse_campaign_row(row: dict) -> FactRow:
    """Map one spCampaigns report row to a fact row."""
    report_date = parse_date(row.get("date"))
    if report_date is None or row.get("campaignId") is None:
        raise ProviderDataError(
            f"Report row missing date or campaignId: {row!r}"[:200], provider_name=PROVIDER_NAME
        )
    measures = {}
    for report_column, column in COLUMN_MAP.items():
        value = row.get(report_column)
        if column in _MONEY_COLUMNS:
            measures[column] = to_decimal(value)
        elif column in _COUNT_COLUMNS:
            measures[column] = None if value is None else to_int(value)
        elif column in _RATIO_COLUMNS:
            measures[column] = None if value is None else to_float(value)
        else:
            measures[column] = value
    for column in ("impressions", "clicks"):
        if measures[column] is None:
            measures[column] = 0
    if measures["cost"] is None:
        measures["cost"] = to_decimal(0)
    return FactRow(
        natural_key={"campaign_id": str(row["campaignId"])},
        report_date=report_date,
        measures=measures,
    )
