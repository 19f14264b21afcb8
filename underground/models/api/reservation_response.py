# underground/models/api/reservation_response.py
from typing import Any

from pydantic import BaseModel

from underground.models.domain.reservation_domain import Event, VillaBooking


class EventListResponse(BaseModel):
    message: str
    events: list[Event]


class EventResponse(BaseModel):
    message: str
    event: Event


class RsvpResponse(BaseModel):
    message: str
    event_id: str
    attendee_count: int
    seats_left: int | None


class VillaBookingResponse(BaseModel):
    message: str
    booking: VillaBooking


class VillaBookingListResponse(BaseModel):
    message: str
    bookings: list[VillaBooking]


class MemberBookingListResponse(BaseModel):
    """Bookings as members see them: admin-only fields are absent."""

    message: str
    bookings: list[dict[str, Any]]
