"""
Business-data fetcher.

Pulls locations and catalog objects from Square, reshapes them into the
flat snapshot stored on ``user_profiles.business_data`` and records the
sync time on the connection. A fetch failure aborts before anything is
written, so the stored snapshot is always a complete one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from voice_onboarding.config import SquareConfig
from voice_onboarding.errors import NotFoundError
from voice_onboarding.schemas.business_schema import (
    Address,
    BusinessData,
    BusinessHoursPeriod,
    CatalogItem,
    Category,
    Location,
    Variation,
)
from voice_onboarding.services.credentials import CredentialResolver
from voice_onboarding.services.supabase_store import SupabaseStore
from voice_onboarding.utils import ms_to_minutes, utc_now_iso

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------- #
# Reshaping
# ---------------------------------------------------------------------- #

def reshape_location(raw: dict[str, Any]) -> Location:
    periods = (raw.get("business_hours") or {}).get("periods") or []
    return Location(
        id=raw["id"],
        name=raw.get("name"),
        business_name=raw.get("business_name"),
        status=raw.get("status"),
        address=Address(**raw["address"]) if raw.get("address") else None,
        phone_number=raw.get("phone_number"),
        business_hours=[
            BusinessHoursPeriod(
                day_of_week=p.get("day_of_week", ""),
                start_local_time=p.get("start_local_time", ""),
                end_local_time=p.get("end_local_time", ""),
            )
            for p in periods
        ],
        timezone=raw.get("timezone"),
    )


def primary_location(locations: list[Location]) -> Optional[Location]:
    """First active location, else the first one."""
    for location in locations:
        if location.status == "ACTIVE":
            return location
    return locations[0] if locations else None


def _reshape_variation(obj: dict[str, Any]) -> Variation:
    data = obj.get("item_variation_data") or {}
    return Variation(
        id=obj["id"],
        name=data.get("name"),
        version=obj.get("version"),
        service_duration=ms_to_minutes(data.get("service_duration")),
        available_for_booking=bool(data.get("available_for_booking")),
        pricing_type=data.get("pricing_type"),
        price_money=data.get("price_money"),
    )


def reshape_catalog(objects: Iterable[dict[str, Any]]) -> tuple[list[CatalogItem], list[Category]]:
    """Link items to their categories and variations.

    Variations come from the item's embedded list when Square includes it,
    otherwise from standalone ITEM_VARIATION objects pointing at the item.
    """
    objects = list(objects)
    categories: dict[str, Category] = {}
    orphan_variations: dict[str, list[Variation]] = {}

    for obj in objects:
        if obj.get("type") == "CATEGORY":
            name = (obj.get("category_data") or {}).get("name")
            categories[obj["id"]] = Category(id=obj["id"], name=name)
        elif obj.get("type") == "ITEM_VARIATION":
            item_id = (obj.get("item_variation_data") or {}).get("item_id")
            orphan_variations.setdefault(item_id, []).append(_reshape_variation(obj))

    items: list[CatalogItem] = []
    for obj in objects:
        if obj.get("type") != "ITEM":
            continue
        data = obj.get("item_data") or {}
        embedded = data.get("variations") or []
        variations = (
            [_reshape_variation(v) for v in embedded]
            if embedded
            else orphan_variations.get(obj["id"], [])
        )
        category_ids = [c["id"] for c in data.get("categories") or [] if c.get("id")]
        if not category_ids and data.get("category_id"):
            category_ids = [data["category_id"]]
        items.append(
            CatalogItem(
                id=obj["id"],
                name=data.get("name"),
                description=data.get("description"),
                variations=variations,
                categories=[categories[c] for c in category_ids if c in categories],
                is_service=any(v.service_duration for v in variations),
            )
        )
    return items, list(categories.values())


def build_snapshot(
    raw_locations: list[dict[str, Any]], catalog_objects: Iterable[dict[str, Any]]
) -> BusinessData:
    locations = [reshape_location(raw) for raw in raw_locations]
    items, categories = reshape_catalog(catalog_objects)
    return BusinessData(
        primary_location=primary_location(locations),
        locations=locations,
        items=items,
        categories=categories,
        last_sync=utc_now_iso(),
    )


# ---------------------------------------------------------------------- #
# Sample data (test mode)
# ---------------------------------------------------------------------- #

_SAMPLE_LOCATIONS = [
    {
        "id": "LOCATION_1",
        "name": "Test Restaurant",
        "business_name": "Test Restaurant",
        "status": "ACTIVE",
        "address": {
            "address_line_1": "123 Test Street",
            "address_line_2": "Suite 100",
            "locality": "Test City",
            "administrative_district_level_1": "CA",
            "postal_code": "12345",
            "country": "US",
        },
        "phone_number": "+1-555-123-4567",
        "business_hours": {
            "periods": [
                {"day_of_week": "MON", "start_local_time": "09:00", "end_local_time": "17:00"},
                {"day_of_week": "TUE", "start_local_time": "09:00", "end_local_time": "17:00"},
            ]
        },
        "timezone": "America/Los_Angeles",
    }
]


def _sample_variation(var_id: str, item_id: str, name: str, amount: int) -> dict[str, Any]:
    return {
        "type": "ITEM_VARIATION",
        "id": var_id,
        "item_variation_data": {
            "item_id": item_id,
            "name": name,
            "pricing_type": "FIXED_PRICING",
            "price_money": {"amount": amount, "currency": "USD"},
        },
    }


_SAMPLE_CATALOG = [
    {"type": "CATEGORY", "id": "CAT_1", "category_data": {"name": "Pizza"}},
    {"type": "CATEGORY", "id": "CAT_2", "category_data": {"name": "Salads"}},
    {
        "type": "ITEM",
        "id": "ITEM_1",
        "item_data": {
            "name": "Margherita Pizza",
            "description": "Classic tomato and mozzarella pizza",
            "category_id": "CAT_1",
            "variations": [
                _sample_variation("VAR_1", "ITEM_1", "Regular", 1500),
                _sample_variation("VAR_2", "ITEM_1", "Large", 2000),
            ],
        },
    },
    {
        "type": "ITEM",
        "id": "ITEM_2",
        "item_data": {
            "name": "Caesar Salad",
            "description": "Fresh romaine lettuce with Caesar dressing",
            "category_id": "CAT_2",
            "variations": [_sample_variation("VAR_3", "ITEM_2", "Regular", 1200)],
        },
    },
]


def sample_business_data() -> BusinessData:
    """Built-in snapshot: 1 location, 2 items, 2 categories."""
    return build_snapshot(_SAMPLE_LOCATIONS, _SAMPLE_CATALOG)


# ---------------------------------------------------------------------- #
# Fetcher
# ---------------------------------------------------------------------- #

class BusinessDataFetcher:
    def __init__(
        self,
        store: SupabaseStore,
        credentials: CredentialResolver,
        square_config: SquareConfig,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.square_config = square_config

    async def fetch(self, connection_id: str) -> BusinessData:
        async with await self.credentials.square_for_connection(connection_id) as square:
            raw_locations = await square.list_locations()
            catalog = await square.list_catalog()
        logger.info(
            "Fetched %d locations and %d catalog objects for connection %s",
            len(raw_locations), len(catalog), connection_id,
        )
        return build_snapshot(raw_locations, catalog)

    async def fetch_and_store(
        self, user_id: str, connection_id: Optional[str] = None
    ) -> dict[str, Any]:
        """Sync the user's snapshot and return the counts."""
        test_mode = self.square_config.test_mode
        if test_mode:
            snapshot = sample_business_data()
        else:
            connection_id = await asyncio.to_thread(
                self.credentials.resolve_connection_id, user_id, connection_id
            )
            snapshot = await self.fetch(connection_id)

        await asyncio.to_thread(
            self.store.update_business_data, user_id, snapshot.model_dump(mode="json")
        )
        if connection_id:
            await asyncio.to_thread(self.store.touch_connection_sync, user_id, connection_id)

        counts = snapshot.counts()
        logger.info("Stored business data for user %s: %s", user_id, counts)
        return {
            "success": True,
            "message": "Business data fetched and stored successfully",
            "test_mode": test_mode,
            "data": counts,
        }

    def test_data(self) -> dict[str, Any]:
        snapshot = sample_business_data()
        return {
            "success": True,
            "message": "Test data generated",
            "test_mode": True,
            "data": {**snapshot.model_dump(mode="json"), **snapshot.counts()},
        }


def load_business_data(store: SupabaseStore, user_id: str) -> BusinessData:
    """The user's stored snapshot, or NotFoundError if none was synced yet."""
    raw = store.get_business_data(user_id)
    if not raw:
        raise NotFoundError("No business data found. Please sync your Square account first.")
    return BusinessData(**raw)
