"""A tenant business and the structured knowledge its chatbot is trained on.

The dashboard owns CRUD for these tables; the chat pipeline only reads them
(see bizchat.ai.business_context).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from bizchat.db.base import Base


def _utcnow() -> datetime:
    # Microsecond precision keeps creation order stable for rows inserted in the same second
    return datetime.now(timezone.utc)


class Business(Base):
    __tablename__ = "businesses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)  # owner (auth.users id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    website = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    hours = relationship(
        "BusinessHours",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="BusinessHours.day_of_week",
    )
    services = relationship(
        "BusinessService",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="[BusinessService.created_at, BusinessService.id]",
    )
    faqs = relationship(
        "BusinessFAQ",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="[BusinessFAQ.created_at, BusinessFAQ.id]",
    )
    knowledge_items = relationship(
        "KnowledgeItem",
        back_populates="business",
        cascade="all, delete-orphan",
        order_by="[KnowledgeItem.created_at, KnowledgeItem.id]",
    )
    custom_instructions = relationship(
        "CustomInstructions",
        back_populates="business",
        cascade="all, delete-orphan",
        uselist=False,
    )


class BusinessHours(Base):
    __tablename__ = "business_hours"
    __table_args__ = (UniqueConstraint("business_id", "day_of_week", name="uq_business_hours_business_day"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    open_time = Column(String, nullable=True)  # "09:00"
    close_time = Column(String, nullable=True)
    is_closed = Column(Boolean, nullable=True, default=False)

    business = relationship("Business", back_populates="hours")


class BusinessService(Base):
    __tablename__ = "business_services"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(String, nullable=True)  # free text, e.g. "$25" or "from $10"
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    business = relationship("Business", back_populates="services")


class BusinessFAQ(Base):
    __tablename__ = "business_faqs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    business = relationship("Business", back_populates="faqs")


class KnowledgeItem(Base):
    """Free-form knowledge base entry: inline text, a website, or an uploaded file."""

    __tablename__ = "knowledge_base"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(16), nullable=False, default="text")  # "text" | "website" | "file"
    title = Column(String, nullable=False)
    content = Column(Text, nullable=True)
    url = Column(String, nullable=True)  # website items
    file_name = Column(String, nullable=True)  # file items
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    business = relationship("Business", back_populates="knowledge_items")


class CustomInstructions(Base):
    __tablename__ = "business_custom_instructions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        UUID(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    instructions = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    business = relationship("Business", back_populates="custom_instructions")
