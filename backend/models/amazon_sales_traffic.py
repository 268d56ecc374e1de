"""AmazonSalesTraffic model - daily sales & traffic per child ASIN."""

from sqlalchemy import Column, Date, DateTime, Float, Integer, Numeric, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class AmazonSalesTraffic(Base):
    """One row per organization, child ASIN and calendar day.

    Sourced from the Selling Partner ``GET_SALES_AND_TRAFFIC_REPORT`` with
    DAY granularity. A re-sync of a day replaces every measure.
    """

    __tablename__ = "amazon_sales_traffic"
    __table_args__ = (
        UniqueConstraint("org_id", "date", "child_asin", name="uix_amazon_sales_traffic"),
    )
    __natural_key__ = ("org_id", "date", "child_asin")

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    child_asin = Column(String, nullable=False)
    parent_asin = Column(String, nullable=True)

    # Sales
    units_ordered = Column(Integer, nullable=True)
    units_ordered_b2b = Column(Integer, nullable=True)
    ordered_product_sales = Column(Numeric(12, 2), nullable=True)
    ordered_product_sales_b2b = Column(Numeric(12, 2), nullable=True)
    total_order_items = Column(Integer, nullable=True)
    total_order_items_b2b = Column(Integer, nullable=True)

    # Traffic
    browser_sessions = Column(Integer, nullable=True)
    mobile_sessions = Column(Integer, nullable=True)
    sessions = Column(Integer, nullable=True)
    browser_page_views = Column(Integer, nullable=True)
    mobile_page_views = Column(Integer, nullable=True)
    page_views = Column(Integer, nullable=True)
    session_percentage = Column(Float, nullable=True)
    page_views_percentage = Column(Float, nullable=True)
    buy_box_percentage = Column(Float, nullable=True)
    unit_session_percentage = Column(Float, nullable=True)
    unit_session_percentage_b2b = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
