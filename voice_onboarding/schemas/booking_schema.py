"""Booking and availability data models.

Square objects are mirrored field-for-field (snake_case on the wire) and
keep unknown fields, so anything Square adds passes through untouched.
Only the fields Square requires are validated.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SquareModel(BaseModel):
    """Pass-through mirror of a Square object."""

    model_config = ConfigDict(extra="allow")

    def to_square(self) -> dict:
        return self.model_dump(exclude_none=True)


class TeamMemberIdFilter(SquareModel):
    any: Optional[list[str]] = None
    all: Optional[list[str]] = None
    none: Optional[list[str]] = None


class SegmentFilter(SquareModel):
    """Availability search filter for one service variation."""

    service_variation_id: str
    team_member_id_filter: Optional[TeamMemberIdFilter] = None


class AppointmentSegment(SquareModel):
    """One bookable unit within a booking."""

    service_variation_id: str
    team_member_id: str
    duration_minutes: Optional[int] = None
    service_variation_version: Optional[int] = None
    intermission_minutes: Optional[int] = None
    any_team_member: Optional[bool] = None
    resource_ids: Optional[list[str]] = None


class Availability(SquareModel):
    """A slot returned by availability search."""

    start_at: str
    location_id: Optional[str] = None
    appointment_segments: list[AppointmentSegment] = Field(default_factory=list)


class Booking(SquareModel):
    id: Optional[str] = None
    version: Optional[int] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    start_at: str
    location_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_note: Optional[str] = None
    seller_note: Optional[str] = None
    appointment_segments: list[AppointmentSegment] = Field(default_factory=list)

    @property
    def duration_minutes(self) -> int:
        return sum(s.duration_minutes or 0 for s in self.appointment_segments)


class BookingPage(BaseModel):
    """One page of a booking listing."""

    bookings: list[Booking] = Field(default_factory=list)
    cursor: Optional[str] = None

    @property
    def has_next_page(self) -> bool:
        return bool(self.cursor)


class CamelModel(BaseModel):
    """Tool and action results, rendered with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AvailableTimeSlot(CamelModel):
    start_time: str
    end_time: str
    duration: Optional[int] = None
    service_variation_id: str
    team_member_id: Optional[str] = None
    location_id: Optional[str] = None


class BookingConfirmation(CamelModel):
    booking_id: str
    version: Optional[int] = None
    start_time: str
    end_time: str
    duration: Optional[int] = None
    service_name: str
    status: Optional[str] = None
    customer_name: Optional[str] = None
    location_name: Optional[str] = None
    team_member_id: Optional[str] = None
