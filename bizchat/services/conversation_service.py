"""Persist widget conversations: one ChatConversation per (business, session)."""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bizchat.models.conversation import ChatConversation, ChatMessage

logger = logging.getLogger(__name__)


def get_or_create_conversation(db: Session, business_id: UUID, session_id: str) -> ChatConversation:
    """
    Get the conversation for (business_id, session_id), creating it on first use.

    Two concurrent first messages of a session can both miss the lookup; the
    unique constraint rejects the second insert and we re-read the winner's
    row. Commits the session (pending work of the caller included).
    """
    conversation = (
        db.query(ChatConversation)
        .filter(ChatConversation.business_id == business_id, ChatConversation.session_id == session_id)
        .first()
    )
    if conversation:
        return conversation

    # Commit the caller's pending work first so a conflict rollback cannot discard it
    db.commit()
    conversation = ChatConversation(business_id=business_id, session_id=session_id)
    db.add(conversation)
    try:
        db.commit()
        db.refresh(conversation)
        logger.info("Created conversation %s for business %s session %s", conversation.id, business_id, session_id)
        return conversation
    except IntegrityError:
        db.rollback()
        conversation = (
            db.query(ChatConversation)
            .filter(ChatConversation.business_id == business_id, ChatConversation.session_id == session_id)
            .first()
        )
        if conversation is not None:
            logger.info("Conversation for business %s session %s created concurrently; reusing", business_id, session_id)
            return conversation
        raise


def append_message(db: Session, conversation: ChatConversation, role: str, content: str) -> ChatMessage:
    """Add a message to a conversation. Flushes; the caller commits."""
    message = ChatMessage(conversation_id=conversation.id, role=role, content=content)
    db.add(message)
    db.flush()
    return message


def record_message(db: Session, business_id: UUID, session_id: str | None, role: str, content: str) -> ChatMessage | None:
    """Append a message to the session's conversation; no-op without a session id."""
    if not session_id:
        return None
    conversation = get_or_create_conversation(db, business_id, session_id)
    return append_message(db, conversation, role, content)

