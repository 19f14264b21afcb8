# underground/models/api/reservation_request.py
from datetime import datetime

from pydantic import BaseModel, Field


class CreateEventRequest(BaseModel):
    """Request body for POST /api/events"""

    title: str = Field(..., min_length=1, max_length=200)
    date: datetime
    description: str = ""
    location: str | None = None
    max_capacity: int | None = Field(None, ge=1, description="Omit for unlimited seats")


class VillaBookingFields(BaseModel):
    """Optional booking details shared by create and update."""

    status: str | None = None
    notes: str | None = None
    number_of_guests: int | None = Field(None, ge=1)
    price: float | None = Field(None, ge=0)
    payment_status: str | None = None
    property_type: str | None = None
    property_contact_info: str | None = None
    property_rules: str | None = None


class CreateVillaBookingRequest(VillaBookingFields):
    """Request body for POST /api/villas/admin"""

    member_id: str = Field(..., min_length=1)
    villa_name: str = Field(..., min_length=1, max_length=200)
    check_in: datetime
    check_out: datetime


class UpdateVillaBookingRequest(VillaBookingFields):
    """Request body for PUT /api/villas/admin/{booking_id}; only sent fields change."""

    villa_name: str | None = Field(None, min_length=1, max_length=200)
    check_in: datetime | None = None
    check_out: datetime | None = None
