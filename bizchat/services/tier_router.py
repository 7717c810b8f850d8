"""Decide which generation transport a business gets from its owner's plan.

Free-tier businesses hand the assembled prompt to the streaming relay
(POST /free-chat); every other plan is streamed directly by this service
(POST /chat).
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from bizchat.core.config import Settings
from bizchat.core.errors import TierMismatch
from bizchat.models.plan import UserPlan

logger = logging.getLogger(__name__)


def resolve_plan_name(db: Session, user_id: UUID, settings: Settings) -> str:
    """Plan name of a business owner; owners without a user_plans row are on the free plan."""
    plan = db.query(UserPlan.plan).filter(UserPlan.user_id == user_id).scalar()
    return plan or settings.free_plan_name


def is_free_tier(plan_name: str, settings: Settings) -> bool:
    return plan_name == settings.free_plan_name


def require_free_tier(plan_name: str, settings: Settings) -> None:
    """Guard for the relay handoff endpoint; paid businesses must use the streamed endpoint."""
    if not is_free_tier(plan_name, settings):
        logger.info("Free-chat called for plan %r; redirecting caller to the metered endpoint", plan_name)
        raise TierMismatch("This endpoint is only for free tier users", usePaid=True)


def check_metered_tier(plan_name: str, settings: Settings) -> None:
    """
    Guard for the streamed endpoint.

    Advisory by default: free businesses are streamed like any other. With
    enforce_tier_on_metered they are sent back to the relay handoff instead.
    """
    if settings.enforce_tier_on_metered and is_free_tier(plan_name, settings):
        logger.info("Metered chat called for a free-tier business; redirecting caller to free-chat")
        raise TierMismatch("This endpoint is only for paid plans", useFree=True)
