"""
Booking tool.

Creates a Square booking for the caller and returns a sentence the agent
can read back verbatim.
"""

import logging
from typing import Optional

from voice_onboarding.tools.context import ToolContext, render_failure
from voice_onboarding.utils import parse_iso

logger = logging.getLogger(__name__)

ACTION = "bookAppointment"


def _offered_team_member(ctx: ToolContext, start_time: str) -> Optional[str]:
    """Team member of a previously offered slot starting at ``start_time``."""
    try:
        wanted = parse_iso(start_time)
    except ValueError:
        return None
    for slot in ctx.session.offered_slots:
        if parse_iso(slot["startTime"]) == wanted:
            return slot.get("teamMemberId")
    return None


async def book_appointment(
    ctx: ToolContext,
    start_time: str,
    customer_name: Optional[str] = None,
    service_name: Optional[str] = None,
    service_variation_id: Optional[str] = None,
    customer_phone: Optional[str] = None,
    team_member_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> str:
    args = {
        "start_time": start_time,
        "customer_name": customer_name,
        "service_name": service_name,
        "service_variation_id": service_variation_id,
        "customer_phone": customer_phone,
        "team_member_id": team_member_id,
        "notes": notes,
    }
    session = ctx.session
    try:
        confirmation = await ctx.actions.book_appointment(
            ctx.owner_user_id,
            start_time=start_time,
            customer_name=customer_name or session.customer_name or "",
            service_name=service_name or session.service_name,
            service_variation_id=service_variation_id,
            customer_phone=customer_phone or session.customer_phone,
            customer_id=session.customer_id,
            team_member_id=team_member_id or _offered_team_member(ctx, start_time),
            customer_note=notes,
        )
        session.booking_id = confirmation.booking_id
        session.customer_name = confirmation.customer_name
        result = (
            f"Appointment successfully booked for {confirmation.customer_name}: "
            f"{confirmation.service_name} from {confirmation.start_time} "
            f"to {confirmation.end_time}"
            + (f" at {confirmation.location_name}" if confirmation.location_name else "")
            + f". Booking reference {confirmation.booking_id}."
        )
        logger.info("Voice booking created: %s", confirmation.booking_id)
    except Exception as exc:
        result = render_failure(ctx, ACTION, exc)
    ctx.log.on_tool_call(ACTION, args, result)
    return result
