"""
Load the structured knowledge of a single business for the chatbot prompt.

Used by both chat endpoints. One call fetches the profile plus every child
collection (hours, services, FAQs, knowledge base, custom instructions) with
eager selectin loads, and normalizes them into a BusinessContext so the prompt
builder never sees a missing collection.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from bizchat.core.errors import NotFound
from bizchat.models.business import Business
from bizchat.schemas.business_context import (
    BusinessContext,
    BusinessProfile,
    FAQEntry,
    HoursEntry,
    KnowledgeEntry,
    ServiceEntry,
)

logger = logging.getLogger(__name__)


def parse_business_id(raw: str | UUID) -> UUID:
    """Business ids are opaque to callers; anything that is not a UUID cannot exist."""
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except (ValueError, TypeError):
        logger.info("Rejecting malformed business id %r", raw)
        raise NotFound()


def get_business(db: Session, business_id: str | UUID) -> Business:
    """Return the Business row or raise NotFound."""
    bid = parse_business_id(business_id)
    business = db.query(Business).filter(Business.id == bid).first()
    if business is None:
        logger.warning("Business not found: %s", bid)
        raise NotFound()
    return business


def load_business_context(db: Session, business_id: str | UUID) -> BusinessContext:
    """
    Fetch and normalize all chatbot knowledge for a business.

    Args:
        db: SQLAlchemy session.
        business_id: Business UUID (or its string form).

    Returns:
        BusinessContext with hours ordered by weekday and the other collections
        in creation order. Empty collections and a missing custom-instructions
        row are valid and come back as [] / "".

    Raises:
        NotFound: If the business itself does not exist.
    """
    bid = parse_business_id(business_id)
    business = (
        db.query(Business)
        .options(
            selectinload(Business.hours),
            selectinload(Business.services),
            selectinload(Business.faqs),
            selectinload(Business.knowledge_items),
            selectinload(Business.custom_instructions),
        )
        .filter(Business.id == bid)
        .execution_options(populate_existing=True)
        .first()
    )
    if business is None:
        logger.warning("Business not found while loading context: %s", bid)
        raise NotFound()

    instructions = business.custom_instructions.instructions if business.custom_instructions else None

    context = BusinessContext(
        profile=BusinessProfile.model_validate(business),
        hours=[HoursEntry.model_validate(h) for h in business.hours],
        services=[ServiceEntry.model_validate(s) for s in business.services],
        faqs=[FAQEntry.model_validate(f) for f in business.faqs],
        knowledge=[KnowledgeEntry.model_validate(k) for k in business.knowledge_items],
        custom_instructions=(instructions or "").strip(),
    )
    logger.info(
        "Loaded context for business %s: hours=%d services=%d faqs=%d knowledge=%d instructions=%s",
        bid,
        len(context.hours),
        len(context.services),
        len(context.faqs),
        len(context.knowledge),
        bool(context.custom_instructions),
    )
    return context
