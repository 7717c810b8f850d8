"""initial chat schema

Revision ID: a3c1e5f7b9d2
Revises:
Create Date: 2026-10-01

Creates businesses and their knowledge tables (hours, services, faqs,
knowledge_base, business_custom_instructions), plans/user_plans,
usage_tracking, cached_responses and the chat_conversations/chat_messages
history, and inserts the default plans.
"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "a3c1e5f7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False)


def _business_fk_column() -> sa.Column:
    return sa.Column("business_id", postgresql.UUID(as_uuid=True), nullable=False)


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def _business_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "businesses",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("contact_phone", sa.String(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_businesses_user_id", "businesses", ["user_id"], unique=False)

    op.create_table(
        "business_hours",
        _id_column(),
        _business_fk_column(),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("open_time", sa.String(), nullable=True),
        sa.Column("close_time", sa.String(), nullable=True),
        sa.Column("is_closed", sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
        sa.UniqueConstraint("business_id", "day_of_week", name="uq_business_hours_business_day"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_business_hours_day_of_week"),
    )

    op.create_table(
        "business_services",
        _id_column(),
        _business_fk_column(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.String(), nullable=True),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
    )

    op.create_table(
        "business_faqs",
        _id_column(),
        _business_fk_column(),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
    )

    op.create_table(
        "knowledge_base",
        _id_column(),
        _business_fk_column(),
        sa.Column("type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("file_name", sa.String(), nullable=True),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
    )

    op.create_table(
        "business_custom_instructions",
        _id_column(),
        _business_fk_column(),
        sa.Column("instructions", sa.Text(), nullable=True),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
        sa.UniqueConstraint("business_id", name="uq_business_custom_instructions_business_id"),
    )

    for table in ("business_hours", "business_services", "business_faqs", "knowledge_base"):
        op.create_index(f"ix_{table}_business_id", table, ["business_id"], unique=False)

    plans = op.create_table(
        "plans",
        _id_column(),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("message_limit", sa.Integer(), nullable=False),
        sa.Column("max_businesses", sa.Integer(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_plans_name"),
    )

    op.create_table(
        "user_plans",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("plan", sa.String(32), nullable=False, server_default="free"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_plans_user_id", "user_plans", ["user_id"], unique=True)

    op.create_table(
        "usage_tracking",
        _id_column(),
        _business_fk_column(),
        sa.Column("month_year", sa.String(7), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
        sa.UniqueConstraint("business_id", "month_year", name="uq_usage_tracking_business_month"),
    )
    op.create_index("ix_usage_tracking_business_id", "usage_tracking", ["business_id"], unique=False)

    op.create_table(
        "cached_responses",
        _id_column(),
        _business_fk_column(),
        sa.Column("question_hash", sa.String(16), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("hit_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
        sa.UniqueConstraint("business_id", "question_hash", name="uq_cached_responses_business_hash"),
    )
    op.create_index("ix_cached_responses_business_id", "cached_responses", ["business_id"], unique=False)

    op.create_table(
        "chat_conversations",
        _id_column(),
        _business_fk_column(),
        sa.Column("session_id", sa.String(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        _business_fk(),
        sa.UniqueConstraint("business_id", "session_id", name="uq_chat_conversations_business_session"),
    )
    op.create_index("ix_chat_conversations_business_id", "chat_conversations", ["business_id"], unique=False)

    op.create_table(
        "chat_messages",
        _id_column(),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["conversation_id"], ["chat_conversations.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_chat_messages_conversation_id", "chat_messages", ["conversation_id"], unique=False)

    op.bulk_insert(
        plans,
        [
            {"id": uuid.uuid4(), "name": "free", "message_limit": 100, "max_businesses": 1},
            {"id": uuid.uuid4(), "name": "pro", "message_limit": 2000, "max_businesses": 3},
            {"id": uuid.uuid4(), "name": "business", "message_limit": 10000, "max_businesses": 10},
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_chat_messages_conversation_id", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_chat_conversations_business_id", table_name="chat_conversations")
    op.drop_table("chat_conversations")
    op.drop_index("ix_cached_responses_business_id", table_name="cached_responses")
    op.drop_table("cached_responses")
    op.drop_index("ix_usage_tracking_business_id", table_name="usage_tracking")
    op.drop_table("usage_tracking")
    op.drop_index("ix_user_plans_user_id", table_name="user_plans")
    op.drop_table("user_plans")
    op.drop_table("plans")
    for table in ("knowledge_base", "business_faqs", "business_services", "business_hours"):
        op.drop_index(f"ix_{table}_business_id", table_name=table)
    op.drop_table("business_custom_instructions")
    op.drop_table("knowledge_base")
    op.drop_table("business_faqs")
    op.drop_table("business_services")
    op.drop_table("business_hours")
    op.drop_index("ix_businesses_user_id", table_name="businesses")
    op.drop_table("businesses")
