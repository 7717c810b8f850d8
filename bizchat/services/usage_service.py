"""Monthly message metering per business.

The counter row for (business, "YYYY-MM") is created on first use; a new
month starts from zero simply because no row exists yet. Checking happens
before any cache lookup or model call; charging is a single atomic upsert.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from bizchat.core.config import Settings
from bizchat.core.errors import LimitReached
from bizchat.db.upsert import insert_for
from bizchat.models.business import Business
from bizchat.models.plan import Plan
from bizchat.models.usage import UsageTracking
from bizchat.services.tier_router import resolve_plan_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageStatus:
    business_id: UUID
    month: str
    plan: str
    count: int
    limit: int

    @property
    def limit_reached(self) -> bool:
        return self.count >= self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


def month_key(now: datetime) -> str:
    """Calendar month of now as "YYYY-MM"."""
    return now.strftime("%Y-%m")


def get_message_count(db: Session, business_id: UUID, month: str) -> int:
    count = (
        db.query(UsageTracking.message_count)
        .filter(UsageTracking.business_id == business_id, UsageTracking.month_year == month)
        .scalar()
    )
    return count or 0


def resolve_message_limit(db: Session, plan_name: str, settings: Settings) -> int:
    """Monthly limit of a plan; falls back to the free tier limit when the plan row is missing."""
    limit = db.query(Plan.message_limit).filter(Plan.name == plan_name).scalar()
    if limit is None:
        logger.warning("Plan %r not found in plans table; using free limit %s", plan_name, settings.free_message_limit)
        return settings.free_message_limit
    return limit


def get_usage_status(db: Session, business: Business, now: datetime, settings: Settings) -> UsageStatus:
    month = month_key(now)
    plan_name = resolve_plan_name(db, business.user_id, settings)
    return UsageStatus(
        business_id=business.id,
        month=month,
        plan=plan_name,
        count=get_message_count(db, business.id, month),
        limit=resolve_message_limit(db, plan_name, settings),
    )


def ensure_within_limit(status: UsageStatus) -> None:
    """
    Gate a chat request on the monthly message limit.

    Raises:
        LimitReached: If the business already used its whole monthly allowance.
    """
    if status.limit_reached:
        logger.info(
            "Limit reached for business %s: %s/%s (%s, plan=%s)",
            status.business_id,
            status.count,
            status.limit,
            status.month,
            status.plan,
        )
        raise LimitReached()
    logger.info(
        "Business %s has %s of %s messages left in %s (plan=%s)",
        status.business_id,
        status.remaining,
        status.limit,
        status.month,
        status.plan,
    )


def increment_usage(db: Session, business_id: UUID, month: str) -> int:
    """
    Add one message to the (business, month) counter and return the new count.

    INSERT ... ON CONFLICT DO UPDATE SET message_count = message_count + 1, so
    concurrent requests never lose an increment. Flushes but does not commit;
    the caller owns the transaction.
    """
    stmt = insert_for(db, UsageTracking).values(
        id=uuid4(),
        business_id=business_id,
        month_year=month,
        message_count=1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["business_id", "month_year"],
        set_={
            "message_count": UsageTracking.message_count + 1,
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)
    count = get_message_count(db, business_id, month)
    logger.info("Usage for business %s in %s is now %s", business_id, month, count)
    return count
