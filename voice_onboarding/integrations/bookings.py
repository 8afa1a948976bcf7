"""
Square Bookings integration.

``BookingService`` is a typed wrapper over one merchant's Square client.
``BookingActions`` adds the service-level operations the voice agent and the
``/booking`` endpoint use: resolving a bookable service from the stored
snapshot, searching a whole-day window and booking a chosen slot.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Optional

from voice_onboarding.errors import InvalidRequestError, NotFoundError
from voice_onboarding.integrations.business_data import load_business_data
from voice_onboarding.schemas.booking_schema import (
    AppointmentSegment,
    Availability,
    AvailableTimeSlot,
    Booking,
    BookingConfirmation,
    BookingPage,
    SegmentFilter,
    TeamMemberIdFilter,
)
from voice_onboarding.schemas.business_schema import BusinessData, CatalogItem, Location, Variation
from voice_onboarding.schemas.customer_schema import Customer
from voice_onboarding.services.credentials import CredentialResolver
from voice_onboarding.services.square_client import SquareClient
from voice_onboarding.services.supabase_store import SupabaseStore
from voice_onboarding.utils import add_minutes, day_window, normalize_phone, parse_iso, to_rfc3339

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, square: SquareClient) -> None:
        self.square = square

    async def search_availability(
        self,
        start_at_min: str,
        start_at_max: str,
        location_id: Optional[str] = None,
        segment_filters: Optional[list[SegmentFilter]] = None,
    ) -> list[Availability]:
        """Open slots in the range. No slots is an empty list, not an error."""
        raw = await self.square.search_availability(
            start_at_min,
            start_at_max,
            location_id=location_id,
            segment_filters=[f.to_square() for f in segment_filters or []],
        )
        return [Availability(**slot) for slot in raw]

    async def create_booking(
        self,
        start_at: str,
        location_id: str,
        segments: list[AppointmentSegment],
        customer_id: Optional[str] = None,
        customer_note: Optional[str] = None,
        seller_note: Optional[str] = None,
    ) -> Booking:
        if not segments:
            raise InvalidRequestError("At least one appointment segment is required")
        payload = Booking(
            start_at=start_at,
            location_id=location_id,
            customer_id=customer_id,
            customer_note=customer_note,
            seller_note=seller_note,
            appointment_segments=segments,
        ).to_square()
        booking = Booking(**await self.square.create_booking(payload))
        logger.info("Booking created: %s at %s", booking.id, booking.start_at)
        return booking

    async def get_booking(self, booking_id: str) -> Booking:
        return Booking(**await self.square.get_booking(booking_id))

    async def update_booking(
        self, booking_id: str, patch: dict[str, Any], version: int
    ) -> Booking:
        """Apply ``patch`` if ``version`` is current; stale versions raise BookingConflictError."""
        booking = Booking(**await self.square.update_booking(booking_id, patch, version))
        logger.info("Booking updated: %s (version %s)", booking_id, booking.version)
        return booking

    async def cancel_booking(self, booking_id: str, version: int) -> Booking:
        booking = Booking(**await self.square.cancel_booking(booking_id, version))
        logger.info("Booking cancelled: %s", booking_id)
        return booking

    async def list_bookings(self, **filters: Any) -> BookingPage:
        """A single page; pass ``cursor`` from the previous page to continue."""
        page = await self.square.list_bookings(**filters)
        return BookingPage(
            bookings=[Booking(**b) for b in page["bookings"]],
            cursor=page["cursor"],
        )

    async def list_all_bookings(self, **filters: Any) -> list[Booking]:
        """Drain every page. Bound the call with start_at_min/start_at_max."""
        return [Booking(**b) async for b in self.square.iter_bookings(**filters)]

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        """Square customer with exactly this phone number, if any."""
        matches = await self.square.search_customers_by_phone(normalize_phone(phone))
        return Customer(**matches[0]) if matches else None


def _slot_from_availability(
    availability: Availability, variation: Variation, location_id: Optional[str]
) -> AvailableTimeSlot:
    segment = availability.appointment_segments[0] if availability.appointment_segments else None
    duration = (segment.duration_minutes if segment else None) or variation.service_duration
    return AvailableTimeSlot(
        start_time=availability.start_at,
        end_time=add_minutes(availability.start_at, duration),
        duration=duration,
        service_variation_id=segment.service_variation_id if segment else variation.id,
        team_member_id=segment.team_member_id if segment else None,
        location_id=availability.location_id or location_id,
    )


class BookingActions:
    """Service-level booking operations for one business owner."""

    def __init__(self, store: SupabaseStore, credentials: CredentialResolver) -> None:
        self.store = store
        self.credentials = credentials

    @asynccontextmanager
    async def bookings_for(self, user_id: str) -> AsyncIterator[BookingService]:
        square = await self.credentials.square_for_user(user_id)
        try:
            yield BookingService(square)
        finally:
            await square.aclose()

    def _resolve(
        self,
        business: BusinessData,
        service_name: Optional[str],
        service_variation_id: Optional[str],
        location_id: Optional[str],
    ) -> tuple[CatalogItem, Variation, Location]:
        if not service_name and not service_variation_id:
            raise InvalidRequestError("serviceName or serviceVariationId is required")
        found = business.find_service(service_name, service_variation_id)
        if found is None:
            raise NotFoundError(
                f"No bookable service found for '{service_name or service_variation_id}'"
            )
        location = business.find_location(location_id)
        if location is None:
            raise InvalidRequestError("No location available for booking")
        item, variation = found
        return item, variation, location

    @staticmethod
    def _segment_filter(variation: Variation, team_member_id: Optional[str]) -> SegmentFilter:
        team_filter = TeamMemberIdFilter(any=[team_member_id]) if team_member_id else None
        return SegmentFilter(service_variation_id=variation.id, team_member_id_filter=team_filter)

    async def find_available_times_for_service(
        self,
        user_id: str,
        start_date: str,
        end_date: Optional[str] = None,
        service_name: Optional[str] = None,
        service_variation_id: Optional[str] = None,
        location_id: Optional[str] = None,
        team_member_id: Optional[str] = None,
    ) -> dict[str, Any]:
        business = await asyncio.to_thread(load_business_data, self.store, user_id)
        item, variation, location = self._resolve(
            business, service_name, service_variation_id, location_id
        )
        start_at_min, start_at_max = day_window(start_date, end_date)

        async with self.bookings_for(user_id) as bookings:
            availabilities = await bookings.search_availability(
                start_at_min,
                start_at_max,
                location_id=location.id,
                segment_filters=[self._segment_filter(variation, team_member_id)],
            )

        slots = [_slot_from_availability(a, variation, location.id) for a in availabilities]
        logger.info(
            "Found %d slots for %s between %s and %s",
            len(slots), item.name, start_at_min, start_at_max,
        )
        return {
            "serviceName": item.name,
            "serviceVariationId": variation.id,
            "locationId": location.id,
            "locationName": location.name,
            "slots": [slot.to_json_dict() for slot in slots],
        }

    async def _pick_team_member(
        self, bookings: BookingService, start_at: str, variation: Variation, location: Location
    ) -> str:
        """Team member offering ``variation`` at exactly ``start_at``."""
        wanted = parse_iso(start_at)
        day = wanted.date().isoformat()
        start_at_min, start_at_max = day_window(day)
        availabilities = await bookings.search_availability(
            start_at_min,
            start_at_max,
            location_id=location.id,
            segment_filters=[self._segment_filter(variation, None)],
        )
        for availability in availabilities:
            if parse_iso(availability.start_at) != wanted:
                continue
            for segment in availability.appointment_segments:
                if segment.team_member_id:
                    return segment.team_member_id
        raise InvalidRequestError(f"The time {start_at} is no longer available")

    async def _resolve_customer(
        self, bookings: BookingService, customer_phone: Optional[str]
    ) -> Optional[str]:
        if not customer_phone:
            return None
        customer = await bookings.find_customer_by_phone(customer_phone)
        return customer.id if customer else None

    async def book_appointment(
        self,
        user_id: str,
        start_time: str,
        customer_name: str,
        service_name: Optional[str] = None,
        service_variation_id: Optional[str] = None,
        customer_phone: Optional[str] = None,
        customer_id: Optional[str] = None,
        location_id: Optional[str] = None,
        team_member_id: Optional[str] = None,
        customer_note: Optional[str] = None,
    ) -> BookingConfirmation:
        if not start_time:
            raise InvalidRequestError("startTime is required")
        if not customer_name or not customer_name.strip():
            raise InvalidRequestError("customerName is required")
        business = await asyncio.to_thread(load_business_data, self.store, user_id)
        item, variation, location = self._resolve(
            business, service_name, service_variation_id, location_id
        )
        start_at = to_rfc3339(parse_iso(start_time))

        async with self.bookings_for(user_id) as bookings:
            if not team_member_id:
                team_member_id = await self._pick_team_member(bookings, start_at, variation, location)
            if not customer_id:
                customer_id = await self._resolve_customer(bookings, customer_phone)
            seller_note = f"Booked by voice agent for {customer_name.strip()}"
            if customer_phone:
                seller_note += f" ({customer_phone})"
            booking = await bookings.create_booking(
                start_at=start_at,
                location_id=location.id,
                segments=[
                    AppointmentSegment(
                        service_variation_id=variation.id,
                        team_member_id=team_member_id,
                        duration_minutes=variation.service_duration,
                        service_variation_version=variation.version,
                    )
                ],
                customer_id=customer_id,
                customer_note=customer_note,
                seller_note=seller_note,
            )

        duration = booking.duration_minutes or variation.service_duration or 0
        start = parse_iso(booking.start_at)
        return BookingConfirmation(
            booking_id=booking.id or "",
            version=booking.version,
            start_time=booking.start_at,
            end_time=to_rfc3339(start + timedelta(minutes=duration)),
            duration=duration,
            service_name=item.name or variation.name or "Appointment",
            status=booking.status,
            customer_name=customer_name.strip(),
            location_name=location.name,
            team_member_id=team_member_id,
        )
