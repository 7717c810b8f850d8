"""Metered chat endpoint: the paid tier's streamed-HTTP transport.

The widget posts the whole conversation; the answer comes back as
text/event-stream delta events ending with `data: [DONE]`, whether it was
generated now or served from the response cache. Failures detected before
streaming starts are returned as JSON errors (see bizchat.core.errors).
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from bizchat.core.clock import Clock, get_clock
from bizchat.core.config import Settings, get_settings
from bizchat.db.session import get_db
from bizchat.schemas.chat import ChatRequest
from bizchat.services.chat_pipeline import run_metered_chat
from bizchat.utils.sse import sse_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post("/chat")
def chat(
    request: ChatRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> StreamingResponse:
    """Answer the last user message of the conversation as an SSE stream."""
    logger.info(
        "Chat request: business_id=%s session_id=%s turns=%d",
        request.business_id,
        request.session_id,
        len(request.messages or []),
    )
    fragments = run_metered_chat(db, request, settings, clock())
    return StreamingResponse(
        sse_stream(fragments),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
