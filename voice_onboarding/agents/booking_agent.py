"""
Square booking agent.

Exposes the three voice tools to the LLM. Each tool method delegates to the
plain async function in ``voice_onboarding.tools`` so the behaviour is
identical whether it runs inside a LiveKit session or not.
"""

from __future__ import annotations

import logging
from typing import Optional

from livekit.agents import Agent, RunContext, function_tool

from voice_onboarding.conversation.transcript import MessageLog
from voice_onboarding.integrations.bookings import BookingActions
from voice_onboarding.prompts.system_prompts import build_booking_prompt
from voice_onboarding.schemas.business_schema import BusinessData
from voice_onboarding.schemas.customer_schema import SessionData
from voice_onboarding.tools.availability import find_available_times as _find_available_times
from voice_onboarding.tools.booking import book_appointment as _book_appointment
from voice_onboarding.tools.context import ToolContext
from voice_onboarding.tools.customer import get_customer_info as _get_customer_info

logger = logging.getLogger(__name__)


class BookingAgent(Agent):
    """Books appointments on the owner's Square calendar."""

    def __init__(
        self,
        actions: BookingActions,
        log: MessageLog,
        business: Optional[BusinessData] = None,
        search_days: int = 7,
    ) -> None:
        super().__init__(instructions=build_booking_prompt(business))
        self._actions = actions
        self._log = log
        self._search_days = search_days

    def _ctx(self, context: RunContext[SessionData]) -> ToolContext:
        return ToolContext(actions=self._actions, session=context.userdata, log=self._log)

    async def on_enter(self) -> None:
        self.session.generate_reply(instructions="Greet the caller and ask how you can help.")

    @function_tool()
    async def get_customer_info(
        self, context: RunContext[SessionData], phone: Optional[str] = None
    ) -> str:
        """Look up the caller by phone number to see if they are a returning customer."""
        return await _get_customer_info(self._ctx(context), phone)

    @function_tool()
    async def find_available_times(
        self,
        context: RunContext[SessionData],
        service_name: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> str:
        """Find open appointment times for a service.

        Dates are YYYY-MM-DD; end_date is inclusive. Defaults to the next week.
        """
        return await _find_available_times(
            self._ctx(context),
            start_date=start_date,
            end_date=end_date,
            service_name=service_name,
            search_days=self._search_days,
        )

    @function_tool()
    async def book_appointment(
        self,
        context: RunContext[SessionData],
        start_time: str,
        customer_name: str,
        service_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> str:
        """Book the service at a start time returned by find_available_times.

        Only call AFTER the caller explicitly confirms the details.
        """
        return await _book_appointment(
            self._ctx(context),
            start_time=start_time,
            customer_name=customer_name,
            service_name=service_name,
            customer_phone=customer_phone,
            notes=notes,
        )
