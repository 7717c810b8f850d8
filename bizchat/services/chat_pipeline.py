"""
Per-message chat pipeline shared by both serving tiers.

Metered tier (POST /chat):
    validate -> business -> usage gate -> cache lookup
    hit:  bump hit count, charge, persist, return the stored answer
    miss: load context -> build prompt -> open model stream -> charge on the
          first fragment -> persist -> stream the rest, then cache the answer
Free tier (POST /free-chat):
    validate -> business -> tier check -> usage gate -> build prompt ->
    persist -> charge -> hand the prompt to the caller for the relay

The routers only adapt these results to their transport (SSE or JSON).
"""

import logging
import time
from datetime import datetime
from typing import Iterator
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bizchat.ai.business_context import get_business, load_business_context
from bizchat.ai.prompt_builder import build_system_prompt
from bizchat.core.config import Settings
from bizchat.core.errors import UpstreamError, ValidationError
from bizchat.schemas.chat import ChatRequest, FreeChatRequest, FreeChatResponse
from bizchat.services.conversation_service import record_message
from bizchat.services.gemini_client import stream_chat_completion
from bizchat.services.response_cache import find_cached_response, record_hit, store_response
from bizchat.services.tier_router import check_metered_tier, require_free_tier
from bizchat.services.usage_service import ensure_within_limit, get_usage_status, increment_usage

logger = logging.getLogger(__name__)

# Appended to whatever was already streamed when generation breaks off mid-answer
FALLBACK_SENTENCE = (
    "\n\nSorry, I ran into a problem finishing this answer. "
    "Please try again or contact the business directly."
)


def _require_business_id(raw: str | None) -> str:
    if not raw or not raw.strip():
        raise ValidationError("Business ID is required")
    return raw.strip()


def _validate_metered_request(request: ChatRequest) -> tuple[str, str, list[dict]]:
    """Return (business_id, question, history) or raise ValidationError."""
    business_id = _require_business_id(request.business_id)
    if not request.messages:
        raise ValidationError("Messages are required")
    last = request.messages[-1]
    if last.role != "user" or not last.content.strip():
        raise ValidationError("No user message found")
    history = [{"role": m.role, "content": m.content} for m in request.messages]
    return business_id, last.content.strip(), history


def run_metered_chat(db: Session, request: ChatRequest, settings: Settings, now: datetime) -> Iterator[str]:
    """
    Handle one message on the metered tier.

    Returns:
        An iterator of answer fragments. For cache hits it yields the stored
        answer once; otherwise it relays the model stream and finalizes
        (cache write, assistant message) when the stream ends.

    Raises:
        ChatError subclasses for every failure detected before streaming starts.
    """
    started = time.monotonic()
    business_id, question, history = _validate_metered_request(request)

    business = get_business(db, business_id)
    status = get_usage_status(db, business, now, settings)
    check_metered_tier(status.plan, settings)
    ensure_within_limit(status)

    if settings.cache_enabled:
        cached = find_cached_response(db, business.id, question, settings)
        if cached is not None:
            record_hit(db, cached)
            increment_usage(db, business.id, status.month)
            record_message(db, business.id, request.session_id, "user", question)
            if settings.persist_assistant_messages:
                record_message(db, business.id, request.session_id, "assistant", cached.response)
            db.commit()
            return iter([cached.response])

    context = load_business_context(db, business.id)
    system_prompt = build_system_prompt(context)

    upstream = iter(stream_chat_completion(system_prompt, history, settings))
    first = next(upstream, None)
    if first is None:
        logger.error("Model returned an empty answer for business %s", business.id)
        raise UpstreamError()

    # The answer has started; this message is now charged
    increment_usage(db, business.id, status.month)
    record_message(db, business.id, request.session_id, "user", question)
    db.commit()

    return _relay_and_finalize(
        db,
        business_id=business.id,
        session_id=request.session_id,
        question=question,
        first=first,
        upstream=upstream,
        settings=settings,
        deadline=started + settings.stream_timeout_seconds,
    )


def _relay_and_finalize(
    db: Session,
    *,
    business_id: UUID,
    session_id: str | None,
    question: str,
    first: str,
    upstream: Iterator[str],
    settings: Settings,
    deadline: float,
) -> Iterator[str]:
    """
    Yield the model's fragments, then cache and persist the answer.

    A failure or deadline overrun mid-stream degrades to the fallback
    sentence after the partial answer; such answers are not cached. If the
    client goes away (GeneratorExit) the upstream stream is closed and
    nothing is written.
    """
    parts = [first]
    completed = False
    try:
        yield first
        for fragment in upstream:
            parts.append(fragment)
            yield fragment
            if time.monotonic() >= deadline:
                raise UpstreamError("Stream deadline exceeded")
        completed = True
    except Exception as e:
        logger.warning("Stream for business %s failed mid-answer after %d fragments: %s", business_id, len(parts), e)
        parts.append(FALLBACK_SENTENCE)
        yield FALLBACK_SENTENCE
    finally:
        close = getattr(upstream, "close", None)
        if close is not None:
            close()

    answer = "".join(parts)
    try:
        if completed and settings.cache_enabled:
            store_response(db, business_id, question, answer)
        if settings.persist_assistant_messages:
            record_message(db, business_id, session_id, "assistant", answer)
        db.commit()
    except SQLAlchemyError:
        # The answer is already delivered; only the bookkeeping is lost
        logger.exception("Failed to finalize streamed answer for business %s", business_id)
        db.rollback()


def run_free_chat(db: Session, request: FreeChatRequest, settings: Settings, now: datetime) -> FreeChatResponse:
    """
    Handle one message on the free tier: charge it and return the prompt the
    caller sends to the streaming relay together with its chat id.
    """
    business_id = _require_business_id(request.business_id)
    message = (request.message or "").strip()
    if not message:
        raise ValidationError("Business ID and message are required")

    business = get_business(db, business_id)
    status = get_usage_status(db, business, now, settings)
    require_free_tier(status.plan, settings)
    ensure_within_limit(status)

    context = load_business_context(db, business.id)
    system_prompt = build_system_prompt(context)
    logger.info("Free chat prompt for business %s: %d chars", business.id, len(system_prompt))

    record_message(db, business.id, request.session_id, "user", message)
    increment_usage(db, business.id, status.month)
    db.commit()

    session_id = request.session_id or uuid4().hex
    return FreeChatResponse(
        system_prompt=system_prompt,
        chat_id=f"{business.id}-{session_id}",
        business_name=business.name,
    )
