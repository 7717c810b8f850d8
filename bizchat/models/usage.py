import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from bizchat.db.base import Base


class UsageTracking(Base):
    """
    Messages served for one business in one calendar month.

    A new month simply has no row yet (zero usage); rows are only ever
    incremented, via INSERT ... ON CONFLICT in usage_service.
    """

    __tablename__ = "usage_tracking"
    __table_args__ = (UniqueConstraint("business_id", "month_year", name="uq_usage_tracking_business_month"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    month_year = Column(String(7), nullable=False)  # "YYYY-MM"
    message_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
