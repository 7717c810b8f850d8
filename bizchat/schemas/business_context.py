"""
In-memory aggregate of everything the chatbot knows about one business.

Built by bizchat.ai.business_context.load_business_context and consumed only
by the prompt builder. Child collections are always lists (possibly empty) and
custom_instructions is always a string, so rendering never has to guard
against missing data.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class HoursEntry(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    open_time: str | None = None
    close_time: str | None = None
    is_closed: bool | None = False

    model_config = ConfigDict(from_attributes=True)


class ServiceEntry(BaseModel):
    name: str
    description: str | None = None
    price: str | None = None

    model_config = ConfigDict(from_attributes=True)


class FAQEntry(BaseModel):
    question: str
    answer: str

    model_config = ConfigDict(from_attributes=True)


class KnowledgeEntry(BaseModel):
    type: str = "text"  # "text" | "website" | "file"
    title: str
    content: str | None = None
    url: str | None = None
    file_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BusinessProfile(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    description: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    website: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BusinessContext(BaseModel):
    profile: BusinessProfile
    hours: list[HoursEntry] = Field(default_factory=list)
    services: list[ServiceEntry] = Field(default_factory=list)
    faqs: list[FAQEntry] = Field(default_factory=list)
    knowledge: list[KnowledgeEntry] = Field(default_factory=list)
    custom_instructions: str = ""
