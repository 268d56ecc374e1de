"""AmazonFinancialEvent model - posted Selling Partner finance transactions."""

from sqlalchemy import JSON, Column, Date, DateTime, Integer, Numeric, String

from database import Base
from models.utils import generate_uuid, utcnow


class AmazonFinancialEvent(Base):
    """A single finance transaction, keyed by Amazon's transaction id.

    Written by the Amazon reconciliation step, which re-reads the last few
    days of postings on every run to pick up late-arriving transactions.
    """

    __tablename__ = "amazon_financial_events"
    __natural_key__ = ("transaction_id",)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    transaction_id = Column(String, unique=True, index=True, nullable=False)
    date = Column(Date, nullable=False, index=True)  # posted date
    posted_at = Column(DateTime, nullable=True)
    transaction_type = Column(String, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=True)
    total_currency = Column(String(3), nullable=True)
    related_identifiers = Column(JSON, nullable=True)
    items = Column(JSON, nullable=True)
    breakdowns = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
