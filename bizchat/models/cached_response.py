"""Previously generated answers, reused for repeated questions to the same business."""

import uuid
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from bizchat.db.base import Base


class CachedResponse(Base):
    __tablename__ = "cached_responses"
    __table_args__ = (UniqueConstraint("business_id", "question_hash", name="uq_cached_responses_business_hash"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    question_hash = Column(String(16), nullable=False)
    question = Column(Text, nullable=False)  # normalized question text
    response = Column(Text, nullable=False)
    hit_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
