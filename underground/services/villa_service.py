"""
villa_service.py
----------------
Purpose:
    Admin management of villa bookings and the member-facing booking list.

Notes:
    - Only admins write bookings; members see their own stays with pricing,
      property contact details and the creating admin stripped out.
    - A booking's check-in must fall strictly before its check-out, on create
      and on every partial update (checked against the stored values).
"""

from datetime import UTC, datetime
from typing import Any

from underground.db import collections
from underground.db.documents import DocumentNotFound, DocumentStore, Filter, to_timestamp, utcnow
from underground.errors import NotFoundError, ValidationError
from underground.infrastructure.audit import AuditLogger
from underground.infrastructure.observability.logging import get_logger
from underground.models.domain.reservation_domain import VillaBooking

logger = get_logger(__name__)

BOOKING_NOT_FOUND = "Booking not found."

# Fields an admin may change after creation
EDITABLE_BOOKING_FIELDS = frozenset(
    {
        "villa_name",
        "check_in",
        "check_out",
        "status",
        "notes",
        "number_of_guests",
        "price",
        "payment_status",
        "property_type",
        "property_contact_info",
        "property_rules",
    }
)

# Editable fields that must always hold a value
REQUIRED_BOOKING_FIELDS = frozenset(
    {"villa_name", "check_in", "check_out", "status", "notes", "payment_status", "property_rules"}
)


def _aware(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _check_dates(check_in: datetime, check_out: datetime) -> None:
    if _aware(check_in) >= _aware(check_out):
        raise ValidationError("Check-in date must be before check-out date.")


class VillaService:
    """CRUD for villa bookings."""

    def __init__(self, store: DocumentStore, audit: AuditLogger):
        self._store = store
        self._audit = audit

    async def create_booking(
        self,
        admin_id: str,
        member_id: str,
        villa_name: str,
        check_in: datetime,
        check_out: datetime,
        **details: Any,
    ) -> VillaBooking:
        member_id = (member_id or "").strip()
        villa_name = (villa_name or "").strip()
        if not member_id or not villa_name or check_in is None or check_out is None:
            raise ValidationError("Member, villa name, check-in and check-out dates are required.")
        _check_dates(check_in, check_out)

        unknown = set(details) - EDITABLE_BOOKING_FIELDS
        if unknown:
            raise ValidationError(f"Unknown booking fields: {', '.join(sorted(unknown))}.")

        now = to_timestamp(utcnow())
        data = {
            "status": "Confirmed",
            "notes": "",
            "number_of_guests": None,
            "price": None,
            "payment_status": "Pending",
            "property_type": None,
            "property_contact_info": None,
            "property_rules": "",
            **{k: v for k, v in details.items() if v is not None},
            "member_id": member_id,
            "villa_name": villa_name,
            "check_in": to_timestamp(check_in),
            "check_out": to_timestamp(check_out),
            "created_by": admin_id,
            "created_at": now,
            "updated_at": now,
        }
        booking_id = await self._store.add(collections.VILLA_BOOKINGS, data)

        logger.info("Villa booking created", booking_id=booking_id, member_id=member_id, admin_id=admin_id)
        self._audit.log_admin_action(
            admin_id, "villa_booking_created", "villa_booking", booking_id, {"member_id": member_id}
        )
        return VillaBooking.from_document(booking_id, data)

    async def get_booking(self, booking_id: str) -> VillaBooking:
        data = await self._store.get(collections.VILLA_BOOKINGS, booking_id)
        if data is None:
            raise NotFoundError(BOOKING_NOT_FOUND)
        return VillaBooking.from_document(booking_id, data)

    async def update_booking(self, booking_id: str, admin_id: str, changes: dict[str, Any]) -> VillaBooking:
        """
        Apply a partial update.

        Raises:
            ValidationError: unknown or cleared field, or the resulting dates are out of order
            NotFoundError: booking does not exist
        """
        unknown = set(changes) - EDITABLE_BOOKING_FIELDS
        if unknown:
            raise ValidationError(f"Unknown booking fields: {', '.join(sorted(unknown))}.")
        cleared = sorted(key for key in REQUIRED_BOOKING_FIELDS & set(changes) if changes[key] is None)
        if cleared:
            raise ValidationError(f"Booking fields cannot be cleared: {', '.join(cleared)}.")
        if "villa_name" in changes and not changes["villa_name"].strip():
            raise ValidationError("Villa name cannot be empty.")

        current = await self.get_booking(booking_id)
        check_in = changes.get("check_in", current.check_in)
        check_out = changes.get("check_out", current.check_out)
        _check_dates(check_in, check_out)

        fields = dict(changes)
        for key in ("check_in", "check_out"):
            if key in fields:
                fields[key] = to_timestamp(fields[key])
        fields["updated_at"] = to_timestamp(utcnow())

        try:
            await self._store.update(collections.VILLA_BOOKINGS, booking_id, fields)
        except DocumentNotFound as e:
            raise NotFoundError(BOOKING_NOT_FOUND) from e

        logger.info("Villa booking updated", booking_id=booking_id, fields=sorted(changes), admin_id=admin_id)
        self._audit.log_admin_action(
            admin_id, "villa_booking_updated", "villa_booking", booking_id, {"fields": sorted(changes)}
        )
        return await self.get_booking(booking_id)

    async def delete_booking(self, booking_id: str, admin_id: str) -> None:
        if await self._store.get(collections.VILLA_BOOKINGS, booking_id) is None:
            raise NotFoundError(BOOKING_NOT_FOUND)

        await self._store.delete(collections.VILLA_BOOKINGS, booking_id)

        logger.info("Villa booking deleted", booking_id=booking_id, admin_id=admin_id)
        self._audit.log_admin_action(admin_id, "villa_booking_deleted", "villa_booking", booking_id)

    async def list_bookings(self) -> list[VillaBooking]:
        docs = await self._store.query(
            collections.VILLA_BOOKINGS, order_by="check_in", descending=True
        )
        return [VillaBooking.from_document(doc.id, doc.data) for doc in docs]

    async def list_member_bookings(self, member_id: str) -> list[dict[str, Any]]:
        """A member's own bookings, newest check-in first, without admin-only fields."""
        docs = await self._store.query(
            collections.VILLA_BOOKINGS,
            [Filter("member_id", "==", member_id)],
            order_by="check_in",
            descending=True,
        )
        return [VillaBooking.from_document(doc.id, doc.data).for_member() for doc in docs]
