"""Free-tier chat endpoint: prompt handoff to the streaming relay.

This service does not call the model for free-tier businesses. It meters the
message, assembles the system prompt and returns it with a chat id; the
widget then opens its own socket to the relay, sends
{sessionId, appId, systemPrompt, message} and renders the text pushed back
until the relay closes the connection.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bizchat.core.clock import Clock, get_clock
from bizchat.core.config import Settings, get_settings
from bizchat.db.session import get_db
from bizchat.schemas.chat import FreeChatRequest, FreeChatResponse
from bizchat.services.chat_pipeline import run_free_chat

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/free-chat", response_model=FreeChatResponse)
def free_chat(
    request: FreeChatRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> FreeChatResponse:
    """Meter the message and return the relay handoff (systemPrompt, chatId, businessName)."""
    logger.info("Free chat request: business_id=%s session_id=%s", request.business_id, request.session_id)
    return run_free_chat(db, request, settings, clock())
