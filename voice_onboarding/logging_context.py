"""Request ID logging context for tracing a request across modules.

Every log record gets a ``request_id`` attribute so a single HTTP request,
webhook delivery or voice session can be followed through the bridge,
the Square client and the store.

Usage:
    from voice_onboarding.logging_context import set_request_id

    set_request_id("req-abc123")
    logger.info("Processing request")  # → [req-abc123] Processing request
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="-")


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the correlation ID for the current async context and return it."""
    value = request_id or uuid.uuid4().hex[:12]
    _request_id.set(value)
    return value


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True
