"""
Customer lookup tool.

Identifies a returning caller by phone number against the merchant's
Square customer directory.
"""

import logging
from typing import Optional

from voice_onboarding.schemas.customer_schema import Customer
from voice_onboarding.tools.context import ToolContext, render, render_failure
from voice_onboarding.utils import normalize_phone

logger = logging.getLogger(__name__)

ACTION = "get_customer_info"


async def lookup_customer(ctx: ToolContext, phone: str) -> Optional[Customer]:
    async with ctx.actions.bookings_for(ctx.owner_user_id) as bookings:
        customer = await bookings.find_customer_by_phone(phone)
    if customer:
        logger.debug("Returning customer found: %s", customer.id)
    return customer


async def get_customer_info(ctx: ToolContext, phone: Optional[str] = None) -> str:
    args = {"phone": phone}
    try:
        session = ctx.session
        if phone:
            session.customer_phone = normalize_phone(phone)
            customer = await lookup_customer(ctx, phone)
            if customer:
                session.customer_id = customer.id
                session.customer_name = customer.display_name or session.customer_name

        data = {
            "customerId": session.customer_id,
            "customerName": session.customer_name,
            "customerPhone": session.customer_phone,
            "returningCustomer": session.customer_id is not None,
        }
        if session.customer_id:
            message = f"Found returning customer {session.customer_name or session.customer_id}."
        else:
            message = "No existing customer record; collect the caller's name."
        result = render(ACTION, True, message, data=data)
    except Exception as exc:
        result = render_failure(ctx, ACTION, exc)
    ctx.log.on_tool_call(ACTION, args, result)
    return result
