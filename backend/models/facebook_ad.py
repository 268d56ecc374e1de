"""FacebookAd model - daily ad-level insights."""

from sqlalchemy import Column, Date, DateTime, Float, Integer, Numeric, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class FacebookAd(Base):
    """One row per organization, campaign/ad set/ad and calendar day.

    ``utm_campaign`` and ``campaign_id`` are attribution tags. ``utm_campaign``
    comes from the organization's ``utm_map`` setting or is set outside the
    sync. An incoming empty value never clears either tag.
    """

    __tablename__ = "facebook_ads"
    __table_args__ = (
        UniqueConstraint(
            "org_id", "date", "campaign_name", "adset_name", "ad_name",
            name="uix_facebook_ad",
        ),
    )
    __natural_key__ = ("org_id", "date", "campaign_name", "adset_name", "ad_name")
    __preserved_columns__ = ("utm_campaign", "campaign_id")

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    campaign_name = Column(String, nullable=False, default="")
    adset_name = Column(String, nullable=False, default="")
    ad_name = Column(String, nullable=False, default="")

    # Attribution tags
    campaign_id = Column(String, nullable=True)
    utm_campaign = Column(String, nullable=True)

    spend = Column(Numeric(12, 2), nullable=True)
    impressions = Column(Integer, nullable=True)
    reach = Column(Integer, nullable=True)
    frequency = Column(Float, nullable=True)
    clicks = Column(Integer, nullable=True)
    cpc = Column(Float, nullable=True)
    cpm = Column(Float, nullable=True)
    ctr = Column(Float, nullable=True)
    purchases = Column(Integer, nullable=True)
    cost_per_purchase = Column(Float, nullable=True)
    purchase_value = Column(Numeric(12, 2), nullable=True)
    roas = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
