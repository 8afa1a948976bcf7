"""Tests for the Square booking service and the service-level booking actions."""

import pytest

from voice_onboarding.errors import (
    BookingConflictError,
    InvalidRequestError,
    NotFoundError,
)
from voice_onboarding.integrations.bookings import BookingService
from voice_onboarding.schemas.booking_schema import AppointmentSegment, SegmentFilter

from tests.conftest import OWNER_ID, availability


def _segment():
    return AppointmentSegment(
        service_variation_id="V1", team_member_id="TM1", duration_minutes=30
    )


class TestBookingService:
    def setup_method(self):
        from tests.conftest import FakeSquare

        self.square = FakeSquare()
        self.service = BookingService(self.square)

    @pytest.mark.asyncio
    async def test_empty_window_is_empty_list(self):
        self.square.availabilities = [availability("2025-03-04T10:00:00Z")]
        slots = await self.service.search_availability(
            "2025-03-03T00:00:00Z", "2025-03-03T23:59:59Z",
            segment_filters=[SegmentFilter(service_variation_id="V1")],
        )
        assert slots == []

    @pytest.mark.asyncio
    async def test_search_passes_filters_through(self):
        self.square.availabilities = [availability("2025-03-03T10:00:00Z")]
        slots = await self.service.search_availability(
            "2025-03-03T00:00:00Z", "2025-03-03T23:59:59Z",
            location_id="L1",
            segment_filters=[SegmentFilter(service_variation_id="V1")],
        )
        assert slots[0].appointment_segments[0].team_member_id == "TM1"
        _, args = self.square.calls[0]
        assert args[2] == "L1"
        assert args[3] == [{"service_variation_id": "V1"}]

    @pytest.mark.asyncio
    async def test_create_returns_id_and_version(self):
        booking = await self.service.create_booking(
            "2025-03-03T10:00:00Z", "L1", [_segment()], customer_note="Window seat"
        )
        assert booking.id == "BK1"
        assert booking.version == 0
        assert booking.duration_minutes == 30
        sent = self.square.calls[0][1][0]
        assert "id" not in sent
        assert sent["customer_note"] == "Window seat"

    @pytest.mark.asyncio
    async def test_create_requires_segments(self):
        with pytest.raises(InvalidRequestError):
            await self.service.create_booking("2025-03-03T10:00:00Z", "L1", [])
        assert self.square.calls == []

    @pytest.mark.asyncio
    async def test_update_with_current_version(self):
        created = await self.service.create_booking("2025-03-03T10:00:00Z", "L1", [_segment()])
        updated = await self.service.update_booking(
            created.id, {"customer_note": "Running late"}, created.version
        )
        assert updated.version == created.version + 1
        assert updated.customer_note == "Running late"

    @pytest.mark.asyncio
    async def test_update_with_stale_version_does_not_mutate(self):
        created = await self.service.create_booking("2025-03-03T10:00:00Z", "L1", [_segment()])
        await self.service.update_booking(created.id, {"customer_note": "v1"}, 0)

        with pytest.raises(BookingConflictError):
            await self.service.update_booking(created.id, {"customer_note": "stale"}, 0)

        current = await self.service.get_booking(created.id)
        assert current.customer_note == "v1"
        assert current.version == 1

    @pytest.mark.asyncio
    async def test_cancel_with_stale_version_does_not_mutate(self):
        created = await self.service.create_booking("2025-03-03T10:00:00Z", "L1", [_segment()])
        await self.service.update_booking(created.id, {"customer_note": "v1"}, 0)

        with pytest.raises(BookingConflictError):
            await self.service.cancel_booking(created.id, 0)

        current = await self.service.get_booking(created.id)
        assert current.status == "ACCEPTED"

    @pytest.mark.asyncio
    async def test_cancel_with_current_version(self):
        created = await self.service.create_booking("2025-03-03T10:00:00Z", "L1", [_segment()])
        cancelled = await self.service.cancel_booking(created.id, created.version)
        assert cancelled.status == "CANCELLED_BY_SELLER"

    @pytest.mark.asyncio
    async def test_list_single_page_and_drain(self):
        for hour in (9, 10, 11):
            await self.service.create_booking(f"2025-03-03T{hour:02d}:00:00Z", "L1", [_segment()])

        page = await self.service.list_bookings()
        assert len(page.bookings) == 2
        assert page.has_next_page

        everything = await self.service.list_all_bookings()
        assert [b.start_at for b in everything] == [
            "2025-03-03T09:00:00Z", "2025-03-03T10:00:00Z", "2025-03-03T11:00:00Z",
        ]

    @pytest.mark.asyncio
    async def test_find_customer_by_phone_normalizes(self):
        self.square.customers = [{"id": "CUST1", "given_name": "Jamie", "phone_number": "+15550001111"}]
        customer = await self.service.find_customer_by_phone("+1 (555) 000-1111")
        assert customer.id == "CUST1"
        assert await self.service.find_customer_by_phone("+15550002222") is None


class TestFindAvailableTimes:
    @pytest.mark.asyncio
    async def test_slots_for_named_service(self, ready_services, square):
        square.availabilities = [availability("2025-03-03T10:00:00Z")]
        found = await ready_services.bookings.find_available_times_for_service(
            OWNER_ID, "2025-03-03", service_name="Haircut"
        )
        assert found["serviceName"] == "Haircut"
        assert found["locationId"] == "L1"
        assert found["slots"] == [{
            "startTime": "2025-03-03T10:00:00Z",
            "endTime": "2025-03-03T10:30:00Z",
            "duration": 30,
            "serviceVariationId": "V1",
            "teamMemberId": "TM1",
            "locationId": "L1",
        }]
        _, args = square.calls[0]
        assert args[:3] == ("2025-03-03T00:00:00Z", "2025-03-03T23:59:59Z", "L1")

    @pytest.mark.asyncio
    async def test_no_slots_is_success_with_empty_list(self, ready_services, square):
        found = await ready_services.bookings.find_available_times_for_service(
            OWNER_ID, "2025-03-03", service_name="Haircut"
        )
        assert found["slots"] == []

    @pytest.mark.asyncio
    async def test_unknown_service(self, ready_services, square):
        with pytest.raises(NotFoundError):
            await ready_services.bookings.find_available_times_for_service(
                OWNER_ID, "2025-03-03", service_name="Massage"
            )
        assert square.calls == []

    @pytest.mark.asyncio
    async def test_service_is_required(self, ready_services):
        with pytest.raises(InvalidRequestError):
            await ready_services.bookings.find_available_times_for_service(OWNER_ID, "2025-03-03")

    @pytest.mark.asyncio
    async def test_without_snapshot(self, services):
        with pytest.raises(NotFoundError):
            await services.bookings.find_available_times_for_service(
                OWNER_ID, "2025-03-03", service_name="Haircut"
            )

    @pytest.mark.asyncio
    async def test_no_location(self, ready_services, store):
        store.profiles[OWNER_ID]["primary_location"] = None
        with pytest.raises(InvalidRequestError, match="No location available"):
            await ready_services.bookings.find_available_times_for_service(
                OWNER_ID, "2025-03-03", service_name="Haircut"
            )


class TestBookAppointment:
    @pytest.mark.asyncio
    async def test_picks_team_member_from_availability(self, ready_services, square):
        square.availabilities = [availability("2025-03-03T10:00:00Z", team_member_id="TM9")]

        confirmation = await ready_services.bookings.book_appointment(
            OWNER_ID, "2025-03-03T10:00:00Z", "Jamie Doe", service_name="Haircut",
        )

        assert confirmation.booking_id == "BK1"
        assert confirmation.team_member_id == "TM9"
        assert confirmation.end_time == "2025-03-03T10:30:00Z"
        assert confirmation.location_name == "Main Salon"
        booking = square.bookings["BK1"]
        segment = booking["appointment_segments"][0]
        assert segment["service_variation_id"] == "V1"
        assert segment["service_variation_version"] == 7
        assert "Jamie Doe" in booking["seller_note"]

    @pytest.mark.asyncio
    async def test_taken_time_rejected(self, ready_services, square):
        square.availabilities = [availability("2025-03-03T11:00:00Z")]
        with pytest.raises(InvalidRequestError, match="no longer available"):
            await ready_services.bookings.book_appointment(
                OWNER_ID, "2025-03-03T10:00:00Z", "Jamie Doe", service_name="Haircut",
            )
        assert square.bookings == {}

    @pytest.mark.asyncio
    async def test_links_existing_customer_by_phone(self, ready_services, square):
        square.customers = [{"id": "CUST1", "phone_number": "+15550001111"}]
        confirmation = await ready_services.bookings.book_appointment(
            OWNER_ID, "2025-03-03T10:00:00Z", "Jamie Doe",
            service_name="Haircut", customer_phone="+1 555 000 1111", team_member_id="TM1",
        )
        assert square.bookings[confirmation.booking_id]["customer_id"] == "CUST1"

    @pytest.mark.asyncio
    async def test_customer_name_required(self, ready_services):
        with pytest.raises(InvalidRequestError, match="customerName"):
            await ready_services.bookings.book_appointment(
                OWNER_ID, "2025-03-03T10:00:00Z", "  ", service_name="Haircut",
            )
