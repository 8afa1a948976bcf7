"""Booking endpoint: service-level actions plus raw Square Bookings operations.

Every call is made on behalf of the authenticated business owner.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voice_onboarding.api.dependencies import get_current_user, get_services
from voice_onboarding.errors import InvalidRequestError
from voice_onboarding.schemas.booking_schema import AppointmentSegment, SegmentFilter
from voice_onboarding.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking")


class BookingRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: Optional[str] = None
    service_name: Optional[str] = None
    service_variation_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    location_id: Optional[str] = None
    team_member_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_id: Optional[str] = None
    customer_note: Optional[str] = None
    seller_note: Optional[str] = None
    booking_id: Optional[str] = None
    version: Optional[int] = None
    booking: Optional[dict[str, Any]] = None
    start_at_min: Optional[str] = None
    start_at_max: Optional[str] = None
    segment_filters: list[SegmentFilter] = Field(default_factory=list)
    appointment_segments: list[AppointmentSegment] = Field(default_factory=list)
    limit: Optional[int] = None
    cursor: Optional[str] = None

    def require(self, *names: str) -> None:
        missing = [to_camel(n) for n in names if getattr(self, n) in (None, "")]
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

    def list_filters(self) -> dict[str, Any]:
        filters = {
            "limit": self.limit,
            "cursor": self.cursor,
            "location_id": self.location_id,
            "team_member_id": self.team_member_id,
            "start_at_min": self.start_at_min,
            "start_at_max": self.start_at_max,
        }
        return {k: v for k, v in filters.items() if v is not None}


Handler = Callable[[Services, str, BookingRequest], Awaitable[Any]]


async def _find_available_times(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("start_date")
    return await services.bookings.find_available_times_for_service(
        user_id,
        req.start_date,
        req.end_date,
        service_name=req.service_name,
        service_variation_id=req.service_variation_id,
        location_id=req.location_id,
        team_member_id=req.team_member_id,
    )


async def _book_appointment(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("start_time", "customer_name")
    confirmation = await services.bookings.book_appointment(
        user_id,
        start_time=req.start_time,
        customer_name=req.customer_name,
        service_name=req.service_name,
        service_variation_id=req.service_variation_id,
        customer_phone=req.customer_phone,
        customer_id=req.customer_id,
        location_id=req.location_id,
        team_member_id=req.team_member_id,
        customer_note=req.customer_note,
    )
    return confirmation.to_json_dict()


async def _search_availability(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("start_at_min", "start_at_max")
    async with services.bookings.bookings_for(user_id) as bookings:
        slots = await bookings.search_availability(
            req.start_at_min,
            req.start_at_max,
            location_id=req.location_id,
            segment_filters=req.segment_filters,
        )
    return [slot.to_square() for slot in slots]


async def _create_booking(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("start_time", "location_id")
    async with services.bookings.bookings_for(user_id) as bookings:
        booking = await bookings.create_booking(
            start_at=req.start_time,
            location_id=req.location_id,
            segments=req.appointment_segments,
            customer_id=req.customer_id,
            customer_note=req.customer_note,
            seller_note=req.seller_note,
        )
    return booking.to_square()


async def _get_booking(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("booking_id")
    async with services.bookings.bookings_for(user_id) as bookings:
        return (await bookings.get_booking(req.booking_id)).to_square()


async def _update_booking(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("booking_id", "version", "booking")
    async with services.bookings.bookings_for(user_id) as bookings:
        updated = await bookings.update_booking(req.booking_id, req.booking, req.version)
    return updated.to_square()


async def _cancel_booking(services: Services, user_id: str, req: BookingRequest) -> Any:
    req.require("booking_id", "version")
    async with services.bookings.bookings_for(user_id) as bookings:
        return (await bookings.cancel_booking(req.booking_id, req.version)).to_square()


async def _list_bookings(services: Services, user_id: str, req: BookingRequest) -> Any:
    async with services.bookings.bookings_for(user_id) as bookings:
        page = await bookings.list_bookings(**req.list_filters())
    return {
        "bookings": [b.to_square() for b in page.bookings],
        "cursor": page.cursor,
        "hasNextPage": page.has_next_page,
    }


async def _list_all_bookings(services: Services, user_id: str, req: BookingRequest) -> Any:
    filters = req.list_filters()
    filters.pop("cursor", None)
    async with services.bookings.bookings_for(user_id) as bookings:
        return [b.to_square() for b in await bookings.list_all_bookings(**filters)]


ACTIONS: dict[str, Handler] = {
    "findAvailableTimesForService": _find_available_times,
    "bookAppointment": _book_appointment,
    "searchAvailability": _search_availability,
    "createBooking": _create_booking,
    "getBooking": _get_booking,
    "updateBooking": _update_booking,
    "cancelBooking": _cancel_booking,
    "listBookings": _list_bookings,
    "listAllBookings": _list_all_bookings,
}


@router.post("")
async def booking(
    payload: BookingRequest,
    user: dict[str, Any] = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    handler = ACTIONS.get(payload.action or "")
    if handler is None:
        raise InvalidRequestError(f"Unknown action: {payload.action}")
    logger.info("Booking action %s for user %s", payload.action, user["id"])
    data = await handler(services, user["id"], payload)
    return {"success": True, "action": payload.action, "data": data}
