"""PostHog query API client.

Implements the CursorSource protocol: a handful of HogQL queries are run
for one day and folded into a single analytics row.

Credentials (per organization): ``api_key``, ``project_id`` and an
optional ``host`` (defaults to ``eu.posthog.com``).
"""

import logging
from datetime import date, datetime

import httpx

from config import settings
from integrations.exceptions import ProviderAPIError, ProviderAuthError
from integrations.http_utils import parse_json, send
from integrations.parsing_utils import round2, to_float, to_int
from integrations.source_protocol import CutoffPolicy, FactRow

logger = logging.getLogger(__name__)

PROVIDER_NAME = "PostHog"
DEFAULT_HOST = "eu.posthog.com"

TRAFFIC_QUERY = """
    SELECT
      count(DISTINCT person_id) AS unique_visitors,
      count(DISTINCT properties.$session_id) AS total_sessions,
      countIf(event = '$pageview') AS pageviews
    FROM events
    WHERE toDate(timestamp) = '{day}'
"""

SESSION_QUERY = """
    SELECT
      avg(session_duration) AS avg_duration,
      countIf(pageview_count = 1) * 100.0 / nullIf(count(), 0) AS bounce_rate
    FROM (
      SELECT
        properties.$session_id AS session_id,
        dateDiff('second', min(timestamp), max(timestamp)) AS session_duration,
        countIf(event = '$pageview') AS pageview_count
      FROM events
      WHERE toDate(timestamp) = '{day}'
        AND properties.$session_id IS NOT NULL
      GROUP BY properties.$session_id
    )
"""

DEVICE_QUERY = """
    SELECT
      properties.$device_type AS device_type,
      count(DISTINCT properties.$session_id) AS sessions
    FROM events
    WHERE toDate(timestamp) = '{day}'
      AND properties.$device_type IS NOT NULL
    GROUP BY properties.$device_type
"""

COUNTRY_QUERY = """
    SELECT
      properties.$geoip_country_name AS country,
      count(DISTINCT person_id) AS visitors
    FROM events
    WHERE toDate(timestamp) = '{day}'
      AND properties.$geoip_country_name IS NOT NULL
    GROUP BY properties.$geoip_country_name
    ORDER BY visitors DESC
    LIMIT 1
"""

REFERRER_QUERY = """
    SELECT
      multiIf(
        properties.$referring_domain IS NULL OR properties.$referring_domain = ''
          OR properties.$referring_domain = '$direct', 'direct',
        properties.$referring_domain ILIKE '%google%' OR properties.$referring_domain ILIKE '%bing%'
          OR properties.$referring_domain ILIKE '%duckduckgo%' OR properties.$referring_domain ILIKE '%yahoo%',
          'organic',
        properties.$referring_domain ILIKE '%facebook%' OR properties.$referring_domain ILIKE '%instagram%'
          OR properties.$referring_domain ILIKE '%twitter%' OR properties.$referring_domain ILIKE '%tiktok%'
          OR properties.$referring_domain ILIKE '%pinterest%' OR properties.$referring_domain ILIKE '%linkedin%',
          'social',
        properties.gclid IS NOT NULL OR properties.fbclid IS NOT NULL
          OR properties.ttclid IS NOT NULL OR properties.msclkid IS NOT NULL, 'paid',
        'other'
      ) AS channel,
      count(DISTINCT properties.$session_id) AS sessions
    FROM events
    WHERE toDate(timestamp) = '{day}'
      AND event = '$pageview'
    GROUP BY channel
"""

FUNNEL_QUERY = """
    SELECT
      countIf(event = 'product_viewed' OR event = 'Product Viewed'
        OR (event = '$pageview' AND properties.$pathname ILIKE '%/products/%')) AS product_views,
      countIf(event = 'add_to_cart' OR event = 'Add to Cart' OR event = 'Added to Cart'
        OR (event = '$autocapture' AND properties.$el_text ILIKE '%add to cart%')) AS add_to_cart,
      countIf(event = 'checkout_started' OR event = 'Checkout Started' OR event = 'begin_checkout'
        OR (event = '$pageview' AND properties.$pathname ILIKE '%/checkout%')) AS checkout_started,
      countIf(event = 'purchase' OR event = 'Purchase' OR event = 'Order Completed' OR event = 'order_completed'
        OR (event = '$pageview' AND properties.$pathname ILIKE '%/thank%')) AS purchases
    FROM events
    WHERE toDate(timestamp) = '{day}'
"""

CHANNELS = ("direct", "organic", "paid", "social")


class PostHogClient:
    """Async client for the PostHog ``/query`` endpoint."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self._transport = transport
        self._timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @property
    def source_name(self) -> str:
        return "posthog"

    @property
    def cutoff(self) -> CutoffPolicy:
        return CutoffPolicy.YESTERDAY

    @property
    def reconcile_source(self) -> str | None:
        return None

    @property
    def reconcile_label(self) -> str:
        return ""

    async def _query(self, client: httpx.AsyncClient, credentials: dict, sql: str) -> list[list]:
        host = credentials.get("host") or DEFAULT_HOST
        response = await send(
            client, "POST",
            f"https://{host}/api/projects/{credentials['project_id']}/query",
            PROVIDER_NAME, "PostHog query",
            headers={"Authorization": f"Bearer {credentials['api_key']}"},
            json={"query": {"kind": "HogQLQuery", "query": sql}},
        )
        result = parse_json(response, PROVIDER_NAME, "PostHog query")
        if result.get("error"):
            raise ProviderAPIError(f"PostHog query error: {result['error']}", provider_name=PROVIDER_NAME)
        return result.get("results") or []

    async def fetch_for_date(self, credentials: dict, report_date: date) -> list[FactRow]:
        """Run the daily queries and return a single analytics row."""
        if not credentials.get("api_key") or not credentials.get("project_id"):
            raise ProviderAuthError("Missing PostHog configuration", provider_name=PROVIDER_NAME)

        day = report_date.isoformat()
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            traffic = await self._query(client, credentials, TRAFFIC_QUERY.format(day=day))
            sessions = await self._query(client, credentials, SESSION_QUERY.format(day=day))
            devices = await self._query(client, credentials, DEVICE_QUERY.format(day=day))
            countries = await self._query(client, credentials, COUNTRY_QUERY.format(day=day))
            referrers = await self._query(client, credentials, REFERRER_QUERY.format(day=day))
            funnel = await self._query(client, credentials, FUNNEL_QUERY.format(day=day))

        measures = build_daily_analytics(traffic, sessions, devices, countries, referrers, funnel)
        logger.info(
            "PostHog: %s analytics, %d visitor(s), %d session(s)",
            day, measures["unique_visitors"], measures["total_sessions"],
        )
        return [FactRow(natural_key={}, report_date=report_date, measures=measures)]

    async def reconcile(self, credentials: dict, now: datetime) -> list[FactRow]:
        return []


def _first_row(results: list[list], width: int) -> list:
    row = list(results[0]) if results else []
    return row + [0] * (width - len(row))


def build_daily_analytics(
    traffic: list[list],
    sessions: list[list],
    devices: list[list],
    countries: list[list],
    referrers: list[list],
    funnel: list[list],
) -> dict:
    """Fold raw HogQL result rows into posthog_analytics columns."""
    unique_visitors, total_sessions, pageviews = (to_int(v) for v in _first_row(traffic, 3)[:3])
    avg_duration, bounce_rate = _first_row(sessions, 2)[:2]

    mobile_sessions = 0
    desktop_sessions = 0
    for device_type, count in devices:
        kind = str(device_type).lower()
        if kind in ("mobile", "tablet"):
            mobile_sessions += to_int(count)
        elif kind == "desktop":
            desktop_sessions = to_int(count)

    top_country = str(countries[0][0]) if countries and countries[0][0] else "Unknown"

    by_channel = {channel: 0 for channel in CHANNELS}
    for channel, count in referrers:
        if channel in by_channel:
            by_channel[channel] = to_int(count)

    product_views, add_to_cart, checkout_started, purchases = (to_int(v) for v in _first_row(funnel, 4)[:4])
    conversion_rate = round2(purchases / unique_visitors * 100) if unique_visitors > 0 else 0.0

    return {
        "unique_visitors": unique_visitors,
        "total_sessions": total_sessions,
        "pageviews": pageviews,
        "bounce_rate": round2(to_float(bounce_rate)),
        "avg_session_duration": round(to_float(avg_duration)),
        "mobile_sessions": mobile_sessions,
        "desktop_sessions": desktop_sessions,
        "top_country": top_country,
        "direct_sessions": by_channel["direct"],
        "organic_sessions": by_channel["organic"],
        "paid_sessions": by_channel["paid"],
        "social_sessions": by_channel["social"],
        "product_views": product_views,
        "add_to_cart": add_to_cart,
        "checkout_started": checkout_started,
        "purchases": purchases,
        "conversion_rate": conversion_rate,
    }
