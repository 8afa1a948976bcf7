"""Shared utilities used across the onboarding backend."""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

DAY_NAMES = {
    "MON": "Monday",
    "TUE": "Tuesday",
    "WED": "Wednesday",
    "THU": "Thursday",
    "FRI": "Friday",
    "SAT": "Saturday",
    "SUN": "Sunday",
}


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+1 (555) 123-4567")
        '+15551234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a trailing ``Z``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_rfc3339(value: datetime) -> str:
    """Render a datetime the way Square expects (UTC, ``Z`` suffix)."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def add_minutes(start_at: str, minutes: Optional[int]) -> str:
    """End time of an appointment starting at ``start_at``."""
    return to_rfc3339(parse_iso(start_at) + timedelta(minutes=minutes or 0))


def day_window(start_date: str, end_date: Optional[str] = None) -> tuple[str, str]:
    """Whole-day search window: start of ``start_date`` to end of ``end_date``."""
    return f"{start_date}T00:00:00Z", f"{end_date or start_date}T23:59:59Z"


def day_name(code: str) -> str:
    return DAY_NAMES.get(code.upper()[:3], code)


def ms_to_minutes(value: Optional[int]) -> Optional[int]:
    if not value:
        return None
    return int(value) // 60000
