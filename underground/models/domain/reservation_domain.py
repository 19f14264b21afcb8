from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Stripped from bookings shown to members
MEMBER_HIDDEN_BOOKING_FIELDS = frozenset({"price", "property_contact_info", "created_by"})


class Event(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: str = ""
    location: str | None = None
    date: datetime
    max_capacity: int | None = None  # None means unbounded
    attendees: list[str] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Event":
        return cls.model_validate({**data, "id": doc_id})

    @property
    def is_full(self) -> bool:
        return self.max_capacity is not None and len(self.attendees) >= self.max_capacity

    @property
    def seats_left(self) -> int | None:
        if self.max_capacity is None:
            return None
        return max(0, self.max_capacity - len(self.attendees))


class VillaBooking(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    member_id: str
    villa_name: str
    check_in: datetime
    check_out: datetime
    status: str = "Confirmed"
    notes: str = ""
    number_of_guests: int | None = None
    price: float | None = None
    payment_status: str = "Pending"
    property_type: str | None = None
    property_contact_info: str | None = None
    property_rules: str = ""
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "VillaBooking":
        return cls.model_validate({**data, "id": doc_id})

    def for_member(self) -> dict[str, Any]:
        """Booking fields a member may see about their own stay."""
        return self.model_dump(mode="json", exclude=set(MEMBER_HIDDEN_BOOKING_FIELDS))
