"""SQLAlchemy ORM models."""

from .amazon_financial_event import AmazonFinancialEvent
from .amazon_sales_traffic import AmazonSalesTraffic
from .amazon_sp_ad import AmazonSpAd
from .facebook_ad import FacebookAd
from .org_setting import OrgSetting
from .posthog_analytics import PosthogAnalytics
from .utils import generate_uuid

# Store key -> fact table. Cursor sources use their own key; the Amazon
# reconciliation step writes to "amazon_finances".
FACT_MODELS: dict[str, type] = {
    "amazon": AmazonSalesTraffic,
    "amazon_finances": AmazonFinancialEvent,
    "facebook": FacebookAd,
    "posthog": PosthogAnalytics,
    "amazon_ads": AmazonSpAd,
}

__all__ = ["AmazonFinancialEvent", "AmazonSalesTraffic", "AmazonSpAd", "FACT_MODELS", "FacebookAd", "OrgSetting", "PosthogAnalytics", "generate_uuid"]
