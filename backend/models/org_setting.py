"""OrgSetting model - encrypted per-organization source settings."""

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from database import Base
from models.utils import generate_uuid, utcnow


class OrgSetting(Base):
    """Stores one encrypted JSON settings blob per (organization, key).

    ``value`` holds ``iv:tag:ciphertext`` (hex, AES-256-GCM). Keys are
    source names such as ``"amazon"`` or ``"amazon_ads"``.
    """

    __tablename__ = "org_settings"
    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uix_org_setting"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(Integer, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
