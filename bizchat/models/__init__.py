from bizchat.models.business import (
    Business,
    BusinessHours,
    BusinessService,
    BusinessFAQ,
    KnowledgeItem,
    CustomInstructions,
)
from bizchat.models.plan import Plan, UserPlan
from bizchat.models.usage import UsageTracking
from bizchat.models.cached_response import CachedResponse
from bizchat.models.conversation import ChatConversation, ChatMessage

__all__ = [
    "Business",
    "BusinessHours",
    "BusinessService",
    "BusinessFAQ",
    "KnowledgeItem",
    "CustomInstructions",
    "Plan",
    "UserPlan",
    "UsageTracking",
    "CachedResponse",
    "ChatConversation",
    "ChatMessage",
]
