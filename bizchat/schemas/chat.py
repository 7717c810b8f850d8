"""Request/response bodies of the two chat endpoints.

Field names are camelCase on the wire (the embed widget sends businessId,
sessionId); required-field checks happen in the pipeline so that missing
fields produce the documented 400 bodies instead of FastAPI's 422.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessageTurn(BaseModel):
    """One turn of the conversation as sent by the widget."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request for POST /chat (metered, streamed)."""

    business_id: str | None = Field(default=None, alias="businessId")
    session_id: str | None = Field(default=None, alias="sessionId")
    messages: list[ChatMessageTurn] | None = None  # full history, last one is the new user message

    model_config = ConfigDict(populate_by_name=True)


class FreeChatRequest(BaseModel):
    """Request for POST /free-chat (prompt handoff to the relay)."""

    business_id: str | None = Field(default=None, alias="businessId")
    session_id: str | None = Field(default=None, alias="sessionId")
    message: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class FreeChatResponse(BaseModel):
    """Everything the widget needs to open the relay connection itself."""

    system_prompt: str = Field(alias="systemPrompt")
    chat_id: str = Field(alias="chatId")
    business_name: str = Field(alias="businessName")
    success: bool = True

    model_config = ConfigDict(populate_by_name=True)
