"""Shared plumbing for the voice agent tools.

Tools return strings (usually JSON) and never raise: the remote agent
speaks whatever comes back, so failures are reported in-band.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from voice_onboarding.conversation.transcript import MessageLog
from voice_onboarding.errors import OnboardingError
from voice_onboarding.integrations.bookings import BookingActions
from voice_onboarding.schemas.customer_schema import SessionData

logger = logging.getLogger(__name__)


class ToolResult(TypedDict, total=False):
    """JSON envelope returned to the agent."""

    success: bool
    action: str
    message: str
    data: Any
    error: str


@dataclass
class ToolContext:
    """What a tool needs: the owner's booking actions, session state and log."""

    actions: BookingActions
    session: SessionData
    log: MessageLog = field(default_factory=MessageLog)

    @property
    def owner_user_id(self) -> str:
        return self.session.owner_user_id


def render(
    action: str,
    success: bool,
    message: str,
    data: Optional[Any] = None,
    error: Optional[str] = None,
) -> str:
    result: ToolResult = {"success": success, "action": action, "message": message}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result)


def render_failure(ctx: ToolContext, action: str, exc: Exception) -> str:
    """Failure string for ``exc``; unexpected errors are logged with traceback."""
    if isinstance(exc, OnboardingError):
        message = exc.message
        logger.warning("Tool %s failed: %s", action, message)
    else:
        message = str(exc) or exc.__class__.__name__
        logger.exception("Tool %s crashed", action)
    ctx.session.error_count += 1
    ctx.log.on_error(f"{action}: {message}")
    return render(action, False, f"Sorry, I couldn't complete that: {message}", error=message)
