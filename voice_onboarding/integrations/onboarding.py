"""
Onboarding completion.

The import job fills the user's ``onboarding`` row field by field. Completing
onboarding turns that row back into a business snapshot on the user profile,
which is what the voice agent reads, and marks the row finished.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from voice_onboarding.config import SQUARE_PROVIDER_KEYS
from voice_onboarding.errors import InvalidRequestError, UpstreamError
from voice_onboarding.schemas.business_schema import (
    Address,
    BusinessData,
    BusinessHoursPeriod,
    CatalogItem,
    Category,
    Location,
)
from voice_onboarding.services.supabase_store import SupabaseStore
from voice_onboarding.utils import DAY_NAMES, utc_now_iso

logger = logging.getLogger(__name__)

ONBOARDING_COMPLETED_STEP = 999

_HOURS_LINE = re.compile(r"^(\w+):\s*(\d{2}:\d{2})\s*-\s*(\d{2}:\d{2})$")
_DAY_CODES = {name: code for code, name in DAY_NAMES.items()}


def parse_opening_hours(text: Optional[str]) -> list[BusinessHoursPeriod]:
    """Inverse of ``Location.format_business_hours``. Unreadable lines are skipped."""
    periods = []
    for line in (text or "").splitlines():
        match = _HOURS_LINE.match(line.strip())
        if not match or match.group(1) not in _DAY_CODES:
            continue
        periods.append(BusinessHoursPeriod(
            day_of_week=_DAY_CODES[match.group(1)],
            start_local_time=match.group(2),
            end_local_time=match.group(3),
        ))
    return periods


def _address(onboarding: dict[str, Any]) -> Optional[Address]:
    parts = [p.strip() for p in (onboarding.get("full_address") or "").split(",") if p.strip()]
    city = onboarding.get("business_city")
    if not parts and not city:
        return None

    def part(i: int) -> Optional[str]:
        return parts[i] if len(parts) > i else None

    return Address(
        address_line_1=part(0),
        locality=city or part(1),
        administrative_district_level_1=part(2),
        postal_code=part(3),
        country=part(4),
    )


def snapshot_from_onboarding(
    onboarding: dict[str, Any], previous: Optional[BusinessData] = None
) -> BusinessData:
    """Rebuild the profile snapshot from an ``onboarding`` row.

    The row has no timezone column, so the timezone of a matching location in
    ``previous`` is carried over.
    """
    locations = []
    if onboarding.get("full_address") or onboarding.get("business_city") or onboarding.get("phone_number"):
        location_id = onboarding.get("primary_location_id") or "primary_location"
        known = previous.find_location(location_id) if previous else None
        locations.append(Location(
            id=location_id,
            name=onboarding.get("business_name") or "Primary Location",
            business_name=onboarding.get("business_name"),
            status="ACTIVE",
            address=_address(onboarding),
            phone_number=onboarding.get("phone_number"),
            business_hours=parse_opening_hours(onboarding.get("opening_hours")),
            timezone=known.timezone if known else None,
        ))

    catalog = onboarding.get("catalog_data") or {}
    return BusinessData(
        merchant_id=onboarding.get("merchant_id"),
        primary_location=locations[0] if locations else None,
        locations=locations,
        items=[CatalogItem(**i) for i in catalog.get("items") or []],
        categories=[Category(**c) for c in catalog.get("categories") or []],
        last_sync=utc_now_iso(),
    )


class OnboardingCompleter:
    def __init__(self, store: SupabaseStore) -> None:
        self.store = store

    def complete_onboarding(self, user_id: Optional[str]) -> dict[str, Any]:
        if not user_id:
            raise InvalidRequestError("userId is required")

        onboarding = self.store.get_onboarding(user_id)
        if not onboarding:
            raise UpstreamError("Failed to fetch onboarding data")

        raw_previous = self.store.get_business_data(user_id)
        previous = BusinessData(**raw_previous) if raw_previous else None
        snapshot = snapshot_from_onboarding(onboarding, previous)
        connection = self.store.get_active_connection(user_id, SQUARE_PROVIDER_KEYS)
        if connection is not None:
            snapshot.connection_id = connection.connection_id

        self.store.update_business_data(user_id, snapshot.model_dump(mode="json"))
        self.store.upsert_onboarding(user_id, {
            "completed": True,
            "current_step": ONBOARDING_COMPLETED_STEP,
            "completed_at": utc_now_iso(),
        })
        logger.info("Onboarding completed for user %s: %s", user_id, snapshot.counts())
        return {"success": True, "message": "Onboarding completed successfully"}
