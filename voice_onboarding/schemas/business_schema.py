"""Denormalized business snapshot stored on the user profile."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from voice_onboarding.utils import day_name


class Address(BaseModel):
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    locality: Optional[str] = None
    administrative_district_level_1: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    def one_line(self) -> str:
        parts = [
            self.address_line_1,
            self.address_line_2,
            self.locality,
            self.administrative_district_level_1,
            self.postal_code,
            self.country,
        ]
        return ", ".join(p for p in parts if p)


class BusinessHoursPeriod(BaseModel):
    day_of_week: str
    start_local_time: str
    end_local_time: str


class Location(BaseModel):
    id: str
    name: Optional[str] = None
    business_name: Optional[str] = None
    status: Optional[str] = None
    address: Optional[Address] = None
    phone_number: Optional[str] = None
    business_hours: list[BusinessHoursPeriod] = Field(default_factory=list)
    timezone: Optional[str] = None

    @property
    def full_address(self) -> str:
        return self.address.one_line() if self.address else ""

    def format_business_hours(self) -> str:
        """Opening hours as ``Day: start - end`` lines."""
        return "\n".join(
            f"{day_name(p.day_of_week)}: {p.start_local_time} - {p.end_local_time}"
            for p in self.business_hours
        )


class Variation(BaseModel):
    id: str
    name: Optional[str] = None
    version: Optional[int] = None
    service_duration: Optional[int] = None  # minutes
    available_for_booking: bool = False
    pricing_type: Optional[str] = None
    price_money: Optional[dict[str, Any]] = None


class Category(BaseModel):
    id: str
    name: Optional[str] = None


class CatalogItem(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    variations: list[Variation] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    is_service: bool = False

    def bookable_variation(self, variation_id: Optional[str] = None) -> Optional[Variation]:
        """The requested variation, else the first one that can be booked."""
        for variation in self.variations:
            if variation_id and variation.id == variation_id:
                return variation
        if variation_id:
            return None
        for variation in self.variations:
            if variation.available_for_booking and variation.service_duration:
                return variation
        return None


class BusinessData(BaseModel):
    """Snapshot persisted to ``user_profiles.business_data``."""

    primary_location: Optional[Location] = None
    locations: list[Location] = Field(default_factory=list)
    items: list[CatalogItem] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    last_sync: Optional[str] = None
    merchant_id: Optional[str] = None
    connection_id: Optional[str] = None

    def counts(self) -> dict[str, int]:
        return {
            "locations_count": len(self.locations),
            "items_count": len(self.items),
            "categories_count": len(self.categories),
        }

    def services(self) -> list[CatalogItem]:
        return [item for item in self.items if item.is_service]

    def find_location(self, location_id: Optional[str]) -> Optional[Location]:
        if not location_id:
            return self.primary_location
        for location in self.locations:
            if location.id == location_id:
                return location
        return None

    def find_service(
        self, service_name: Optional[str] = None, variation_id: Optional[str] = None
    ) -> Optional[tuple[CatalogItem, Variation]]:
        """Resolve a bookable (item, variation) by variation id or service name."""
        if variation_id:
            for item in self.items:
                variation = item.bookable_variation(variation_id)
                if variation:
                    return item, variation
            return None
        if not service_name:
            return None
        wanted = service_name.strip().lower()
        candidates = [i for i in self.items if i.name and i.name.lower() == wanted]
        if not candidates:
            candidates = [i for i in self.items if i.name and wanted in i.name.lower()]
        for item in candidates:
            variation = item.bookable_variation()
            if variation:
                return item, variation
        return None
