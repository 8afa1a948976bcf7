"""
System prompt for the Square booking agent.

Business details come from the owner's synced Square snapshot rather than
configuration. Voice-specific rules keep responses suited to a phone call.
"""

from typing import Optional

from voice_onboarding.schemas.business_schema import BusinessData

VOICE_STYLE_RULES = """
VOICE INTERACTION RULES (critical for phone calls):
- Keep responses to 1-2 sentences maximum. This is a phone call, not a text chat.
- Never use markdown, bullet points, numbered lists, or any text formatting.
- Never use emojis or special characters.
- Spell out phone numbers digit by digit.
- For dates, say "Tuesday the fourteenth of January" not "01/14" or "2025-01-14".
- Say times in the business's local time, e.g. "half past two in the afternoon".
- Ask ONE question at a time. Never combine multiple questions.
"""

BOOKING_RULES = """
You are the booking assistant. Your job is to book appointments on the
business's Square calendar.

Steps:
1. Greet the caller and ask which service they would like.
2. If the caller gives a phone number, use get_customer_info to check for an existing record.
3. Ask which day suits them, then use find_available_times to look up open times.
4. Offer at most three of the returned times. Never invent a time the tool did not return.
5. Once the caller picks a time and you have their name, read back service, day and time.
6. Only after the caller confirms, use book_appointment with the chosen start time.
7. Read back the confirmation the tool returns, including the booking reference.

DO NOT:
- Promise availability before the tool confirms it
- Quote prices other than those listed below
- Book without an explicit "yes" from the caller
If a tool reports a failure, apologise briefly and offer another day or time.
"""


def build_business_context(business: Optional[BusinessData]) -> str:
    """Location, hours and bookable services from the stored snapshot."""
    if business is None or business.primary_location is None:
        return "You are the booking assistant for a local business.\n"

    location = business.primary_location
    lines = [f"You are the booking assistant for {location.business_name or location.name}."]
    if location.full_address:
        lines.append(f"Address: {location.full_address}.")
    if location.timezone:
        lines.append(
            f"Local timezone: {location.timezone}. Tool times are UTC; "
            "convert them to this timezone before saying them."
        )
    hours = location.format_business_hours()
    if hours:
        lines.append("Opening hours:\n" + hours)

    services = business.services() or business.items
    if services:
        lines.append("Services offered:")
        for item in services:
            variation = item.bookable_variation() or (item.variations[0] if item.variations else None)
            detail = ""
            if variation and variation.service_duration:
                detail = f" ({variation.service_duration} minutes)"
            lines.append(f"- {item.name}{detail}")
    return "\n".join(lines) + "\n"


def build_booking_prompt(business: Optional[BusinessData]) -> str:
    return f"{build_business_context(business)}\n{BOOKING_RULES}\n{VOICE_STYLE_RULES}"
