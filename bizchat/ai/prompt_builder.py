"""
Render a BusinessContext into the chatbot's system prompt.

Pure and deterministic: the same context always yields the same string.
Sections whose source data is empty are left out entirely, and custom
instructions come last among the data sections so they can override the
general guidance. Nothing is truncated.
"""

from bizchat.schemas.business_context import (
    BusinessContext,
    BusinessProfile,
    FAQEntry,
    HoursEntry,
    KnowledgeEntry,
    ServiceEntry,
)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

ROLE_FRAMING = (
    "You are a helpful, friendly, and professional AI assistant for {name}. "
    "You have been trained with knowledge about this business and should provide "
    "accurate, helpful responses to its customers."
)

RESPONSE_GUIDELINES = """## Response Guidelines
- Be warm, professional, and conversational
- Keep responses concise and helpful
- Answer only from the business information above; never make up hours, prices, services or policies that are not listed
- If asked about something not covered above, say you don't have that information and suggest contacting the business directly
- Use markdown formatting when it improves readability
- Remember context from earlier in the conversation
- If the business has special instructions above, follow them; they take priority over these guidelines"""


def _format_profile(profile: BusinessProfile) -> str:
    lines = ["## Business Profile", f"**Name:** {profile.name}"]
    if profile.description:
        lines.append(f"**About:** {profile.description}")
    if profile.address:
        lines.append(f"**Address:** {profile.address}")
    if profile.website:
        lines.append(f"**Website:** {profile.website}")
    contact = [c for c in (profile.contact_phone, profile.contact_email) if c]
    if contact:
        lines.append(f"**Contact:** {' / '.join(contact)}")
    return "\n".join(lines)


def format_hours_line(entry: HoursEntry) -> str:
    day = DAY_NAMES[entry.day_of_week]
    if entry.is_closed:
        return f"{day}: Closed"
    return f"{day}: {entry.open_time or 'N/A'} - {entry.close_time or 'N/A'}"


def format_service_line(service: ServiceEntry) -> str:
    line = f"- {service.name}"
    if service.description:
        line += f": {service.description}"
    if service.price:
        line += f" ({service.price})"
    return line


def format_faq(faq: FAQEntry) -> str:
    return f"Q: {faq.question}\nA: {faq.answer}"


def format_knowledge(item: KnowledgeEntry) -> str:
    """Render one knowledge entry under its title; unknown types render as plain text."""
    heading = f"### {item.title}"
    if item.type == "website" and item.url:
        heading += f" (Website: {item.url})"
    elif item.type == "file" and item.file_name:
        heading += f" (File: {item.file_name})"
    content = (item.content or "").strip()
    return f"{heading}\n{content}" if content else heading


def build_system_prompt(context: BusinessContext) -> str:
    """Assemble the full system prompt for one business."""
    sections = [
        ROLE_FRAMING.format(name=context.profile.name),
        _format_profile(context.profile),
    ]

    if context.hours:
        sections.append("## Operating Hours\n" + "\n".join(format_hours_line(h) for h in context.hours))

    if context.services:
        sections.append("## Services & Products\n" + "\n".join(format_service_line(s) for s in context.services))

    if context.faqs:
        sections.append("## Frequently Asked Questions\n" + "\n\n".join(format_faq(f) for f in context.faqs))

    if context.knowledge:
        sections.append("## Additional Knowledge\n" + "\n\n".join(format_knowledge(k) for k in context.knowledge))

    if context.custom_instructions:
        sections.append("## Special Instructions\n" + context.custom_instructions)

    sections.append(RESPONSE_GUIDELINES)
    return "\n\n".join(sections)
