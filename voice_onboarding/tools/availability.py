"""
Availability tool.

Searches Square for open times of one service across a date range and
remembers the offered slots so a follow-up booking can reuse them.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from voice_onboarding.tools.context import ToolContext, render, render_failure

logger = logging.getLogger(__name__)

ACTION = "findAvailableTimesForService"

# Slots spoken back to the caller per search.
MAX_SLOTS_RETURNED = 5


async def find_available_times(
    ctx: ToolContext,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    service_name: Optional[str] = None,
    service_variation_id: Optional[str] = None,
    team_member_id: Optional[str] = None,
    search_days: int = 7,
) -> str:
    """Open times for a service between two dates (YYYY-MM-DD, inclusive)."""
    args = {
        "start_date": start_date,
        "end_date": end_date,
        "service_name": service_name,
        "service_variation_id": service_variation_id,
        "team_member_id": team_member_id,
    }
    try:
        start_date = start_date or (date.today() + timedelta(days=1)).isoformat()
        end_date = end_date or (
            date.fromisoformat(start_date) + timedelta(days=search_days - 1)
        ).isoformat()
        found = await ctx.actions.find_available_times_for_service(
            ctx.owner_user_id,
            start_date,
            end_date,
            service_name=service_name,
            service_variation_id=service_variation_id,
            team_member_id=team_member_id,
        )
        slots = found["slots"]
        ctx.session.service_name = found["serviceName"]
        ctx.session.offered_slots = slots

        if not slots:
            result = render(
                ACTION,
                False,
                f"No appointments available for {found['serviceName']} "
                f"between {start_date} and {end_date}.",
                data=found,
            )
        else:
            shown = {**found, "slots": slots[:MAX_SLOTS_RETURNED], "totalSlots": len(slots)}
            result = render(
                ACTION,
                True,
                f"Found {len(slots)} available times for {found['serviceName']}.",
                data=shown,
            )
    except Exception as exc:
        result = render_failure(ctx, ACTION, exc)
    ctx.log.on_tool_call(ACTION, args, result)
    return result
