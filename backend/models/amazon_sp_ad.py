"""AmazonSpAd model - Sponsored Products campaign performance per day."""

from sqlalchemy import Column, Date, DateTime, Float, Integer, Numeric, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class AmazonSpAd(Base):
    """One row per organization, campaign and calendar day.

    Filled from asynchronous ``spCampaigns`` reports. Attribution windows
    keep moving for up to 30 days, so recent dates are re-requested on a
    fixed lookback rather than from a cursor.
    """

    __tablename__ = "amazon_sp_ads"
    __table_args__ = (
        UniqueConstraint("org_id", "date", "campaign_id", name="uix_amazon_sp_ad"),
    )
    __natural_key__ = ("org_id", "date", "campaign_id")

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    campaign_id = Column(String, nullable=False)

    # Dimensions
    campaign_name = Column(String, nullable=True)
    campaign_status = Column(String, nullable=True)
    campaign_budget_amount = Column(Numeric(12, 2), nullable=True)
    campaign_budget_type = Column(String, nullable=True)
    campaign_budget_currency_code = Column(String(3), nullable=True)
    campaign_bidding_strategy = Column(String, nullable=True)

    # Core metrics
    impressions = Column(Integer, nullable=True)
    clicks = Column(Integer, nullable=True)
    cost = Column(Numeric(12, 2), nullable=True)
    spend = Column(Numeric(12, 2), nullable=True)
    cost_per_click = Column(Float, nullable=True)
    click_through_rate = Column(Float, nullable=True)
    top_of_search_impression_share = Column(Float, nullable=True)

    # Sales by attribution window
    sales_1d = Column(Numeric(12, 2), nullable=True)
    sales_7d = Column(Numeric(12, 2), nullable=True)
    sales_14d = Column(Numeric(12, 2), nullable=True)
    sales_30d = Column(Numeric(12, 2), nullable=True)

    # Purchases by attribution window
    purchases_1d = Column(Integer, nullable=True)
    purchases_7d = Column(Integer, nullable=True)
    purchases_14d = Column(Integer, nullable=True)
    purchases_30d = Column(Integer, nullable=True)

    # Units sold by attribution window
    units_sold_clicks_1d = Column(Integer, nullable=True)
    units_sold_clicks_7d = Column(Integer, nullable=True)
    units_sold_clicks_14d = Column(Integer, nullable=True)
    units_sold_clicks_30d = Column(Integer, nullable=True)

    # Efficiency
    acos_clicks_14d = Column(Float, nullable=True)
    roas_clicks_14d = Column(Float, nullable=True)
    add_to_list = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
