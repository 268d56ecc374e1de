"""PosthogAnalytics model - one row of site analytics per day."""

from sqlalchemy import Column, Date, DateTime, Float, Integer, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class PosthogAnalytics(Base):
    """Daily traffic, device, referrer and funnel metrics for an organization."""

    __tablename__ = "posthog_analytics"
    __table_args__ = (
        UniqueConstraint("org_id", "date", name="uix_posthog_analytics"),
    )
    __natural_key__ = ("org_id", "date")

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    # Traffic
    unique_visitors = Column(Integer, nullable=True)
    total_sessions = Column(Integer, nullable=True)
    pageviews = Column(Integer, nullable=True)
    bounce_rate = Column(Float, nullable=True)
    avg_session_duration = Column(Integer, nullable=True)  # seconds

    # Device
    mobile_sessions = Column(Integer, nullable=True)
    desktop_sessions = Column(Integer, nullable=True)
    top_country = Column(String, nullable=True)

    # Referrers
    direct_sessions = Column(Integer, nullable=True)
    organic_sessions = Column(Integer, nullable=True)
    paid_sessions = Column(Integer, nullable=True)
    social_sessions = Column(Integer, nullable=True)

    # Funnel
    product_views = Column(Integer, nullable=True)
    add_to_cart = Column(Integer, nullable=True)
    checkout_started = Column(Integer, nullable=True)
    purchases = Column(Integer, nullable=True)
    conversion_rate = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
