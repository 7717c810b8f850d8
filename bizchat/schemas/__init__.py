from bizchat.schemas.business_context import (
    BusinessContext,
    BusinessProfile,
    HoursEntry,
    ServiceEntry,
    FAQEntry,
    KnowledgeEntry,
)
from bizchat.schemas.chat import ChatMessageTurn, ChatRequest, FreeChatRequest, FreeChatResponse

__all__ = [
    "BusinessContext",
    "BusinessProfile",
    "HoursEntry",
    "ServiceEntry",
    "FAQEntry",
    "KnowledgeEntry",
    "ChatMessageTurn",
    "ChatRequest",
    "FreeChatRequest",
    "FreeChatResponse",
]
