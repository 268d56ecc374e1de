"""Facebook Marketing API client.

Implements the CursorSource protocol for ad-level daily insights.

Credentials (per organization): ``access_token`` and ``ad_account_id``, plus an
optional ``utm_map`` of ad set name to UTM campaign tag. Ad set names are
matched case-insensitively; ads in unmapped ad sets are sent with an empty
tag so the store keeps any value already recorded.
"""

import json
import logging
from datetime import date, datetime

import httpx

from config import settings
from integrations.exceptions import ProviderAPIError, ProviderAuthError, ProviderDataError
from integrations.http_utils import parse_json, send
from integrations.parsing_utils import round2, to_decimal, to_float, to_int
from integrations.source_protocol import CutoffPolicy, FactRow

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Facebook"

API_VERSION = "v21.0"
GRAPH_URL = f"https://graph.facebook.com/{API_VERSION}"

INSIGHT_FIELDS = [
    "campaign_id",
    "campaign_name",
    "adset_name",
    "ad_name",
    "spend",
    "impressions",
    "reach",
    "frequency",
    "clicks",
    "cpc",
    "cpm",
    "ctr",
    "actions",
    "action_values",
    "cost_per_action_type",
]

PURCHASE_ACTIONS = ("purchase", "omni_purchase")


class FacebookAdsClient:
    """Async client for ``/{ad_account_id}/insights`` at ad level."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        page_size: int = 500,
    ):
        self._transport = transport
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._page_size = page_size

    @property
    def source_name(self) -> str:
        return "facebook"

    @property
    def cutoff(self) -> CutoffPolicy:
        return CutoffPolicy.TODAY

    @property
    def reconcile_source(self) -> str | None:
        return None

    @property
    def reconcile_label(self) -> str:
        return ""

    async def fetch_for_date(self, credentials: dict, report_date: date) -> list[FactRow]:
        """Fetch every ad's insights for one day, following ``paging.next``."""
        access_token = credentials.get("access_token")
        account_id = credentials.get("ad_account_id")
        if not access_token or not account_id:
            raise ProviderAuthError("Missing Facebook configuration", provider_name=PROVIDER_NAME)
        if not str(account_id).startswith("act_"):
            account_id = f"act_{account_id}"
        utm_map = load_utm_map(credentials)

        day = report_date.isoformat()
        url: str | None = f"{GRAPH_URL}/{account_id}/insights"
        params: dict | None = {
            "fields": ",".join(INSIGHT_FIELDS),
            "time_range": json.dumps({"since": day, "until": day}),
            "level": "ad",
            "limit": str(self._page_size),
            "access_token": access_token,
        }

        rows: list[FactRow] = []
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            while url:
                response = await send(client, "GET", url, PROVIDER_NAME, "Facebook insights", params=params)
                result = parse_json(response, PROVIDER_NAME, "Facebook insights")
                if result.get("error"):
                    raise ProviderAPIError(
                        f"Facebook API error: {result['error'].get('message', 'unknown error')}",
                        provider_name=PROVIDER_NAME,
                    )
                rows.extend(parse_insight(insight, report_date, utm_map) for insight in result.get("data") or [])
                # paging.next already carries every query parameter
                url = (result.get("paging") or {}).get("next")
                params = None

        logger.info("Facebook: %s insights, %d ad row(s)", day, len(rows))
        return rows

    async def reconcile(self, credentials: dict, now: datetime) -> list[FactRow]:
        return []


def _purchase_value(entries: list[dict] | None) -> float:
    for entry in entries or []:
        if entry.get("action_type") in PURCHASE_ACTIONS:
            return to_float(entry.get("value"))
    return 0.0


def load_utm_map(credentials: dict) -> dict[str, str]:
    """Return the ad set to UTM campaign mapping keyed by lowercased ad set name.

    Raises:
        ProviderDataError: If ``utm_map`` is present but not a string mapping.
    """
    raw = credentials.get("utm_map")
    if raw is None:
        return {}
    if not isinstance(raw, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
    ):
        raise ProviderDataError(
            "UTM lookup failed: utm_map must map ad set names to strings",
            provider_name=PROVIDER_NAME,
        )
    return {k.strip().lower(): v for k, v in raw.items()}


def parse_insight(insight: dict, report_date: date, utm_map: dict[str, str] | None = None) -> FactRow:
    """Map one insights record to a facebook_ads row.

    ``utm_campaign`` is not part of the insights response. It comes from
    ``utm_map`` by ad set name, or is sent empty so the store keeps
    whatever value is already recorded.
    """
    adset_name = insight.get("adset_name") or ""
    spend = to_float(insight.get("spend"))
    purchase_value = _purchase_value(insight.get("action_values"))
    roas = purchase_value / spend if spend > 0 else 0.0
    return FactRow(
        natural_key={
            "campaign_name": insight.get("campaign_name") or "",
            "adset_name": adset_name,
            "ad_name": insight.get("ad_name") or "",
        },
        report_date=report_date,
        measures={
            "campaign_id": str(insight.get("campaign_id") or ""),
            "utm_campaign": (utm_map or {}).get(adset_name.strip().lower(), ""),
            "spend": to_decimal(spend),
            "impressions": to_int(insight.get("impressions")),
            "reach": to_int(insight.get("reach")),
            "frequency": round2(to_float(insight.get("frequency"))),
            "clicks": to_int(insight.get("clicks")),
            "cpc": round2(to_float(insight.get("cpc"))),
            "cpm": round2(to_float(insight.get("cpm"))),
            "ctr": round2(to_float(insight.get("ctr"))),
            "purchases": int(_purchase_value(insight.get("actions"))),
            "cost_per_purchase": round2(_purchase_value(insight.get("cost_per_action_type"))),
            "purchase_value": to_decimal(purchase_value),
            "roas": round2(roas),
        },
    )
