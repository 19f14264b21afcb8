"""
Capacity-bounded event reservations.

RSVP and cancel each run as a single store transaction that re-reads the event
immediately before deciding, so concurrent requests for the last seat cannot
both succeed. This service is the only writer of ``events.attendees``.
"""

from dataclasses import dataclass
from datetime import datetime

from underground.db import collections
from underground.db.documents import DocumentStore, Filter, Transaction, to_timestamp, utcnow
from underground.errors import (
    AlreadyRsvped,
    EventFull,
    NotFoundError,
    NotRsvped,
    ValidationError,
)
from underground.infrastructure.audit import AuditLogger
from underground.infrastructure.observability.logging import get_logger
from underground.models.domain.reservation_domain import Event

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class RsvpResult:
    event_id: str
    attendee_count: int
    seats_left: int | None


class ReservationService:
    """Event listing, creation and RSVP management."""

    def __init__(self, store: DocumentStore, audit: AuditLogger):
        self._store = store
        self._audit = audit

    async def list_upcoming_events(self, now: datetime | None = None) -> list[Event]:
        docs = await self._store.query(
            collections.EVENTS,
            [Filter("date", ">=", to_timestamp(now or utcnow()))],
            order_by="date",
        )
        return [Event.from_document(doc.id, doc.data) for doc in docs]

    async def create_event(
        self,
        admin_id: str,
        title: str,
        date: datetime,
        description: str = "",
        location: str | None = None,
        max_capacity: int | None = None,
    ) -> Event:
        title = (title or "").strip()
        if not title:
            raise ValidationError("An event title is required.")
        if max_capacity is not None and max_capacity < 1:
            raise ValidationError("Event capacity must be at least 1.")

        now = to_timestamp(utcnow())
        data = {
            "title": title,
            "description": description or "",
            "location": location,
            "date": to_timestamp(date),
            "max_capacity": max_capacity,
            "attendees": [],
            "created_by": admin_id,
            "created_at": now,
            "updated_at": now,
        }
        event_id = await self._store.add(collections.EVENTS, data)

        logger.info("Event created", event_id=event_id, max_capacity=max_capacity, admin_id=admin_id)
        self._audit.log_admin_action(admin_id, "event_created", "event", event_id, {"title": title})
        return Event.from_document(event_id, data)

    async def rsvp(self, event_id: str, user_id: str) -> RsvpResult:
        """
        Add ``user_id`` to the event's attendees.

        Raises:
            NotFoundError: event does not exist
            AlreadyRsvped: user is already attending
            EventFull: the event has a capacity and it is reached
        """

        async def _rsvp(tx: Transaction) -> RsvpResult:
            data = await tx.get(collections.EVENTS, event_id)
            if data is None:
                raise NotFoundError("Event not found.")

            event = Event.from_document(event_id, data)
            if user_id in event.attendees:
                raise AlreadyRsvped()
            if event.is_full:
                raise EventFull()

            attendees = [*event.attendees, user_id]
            tx.update(
                collections.EVENTS,
                event_id,
                {"attendees": attendees, "updated_at": to_timestamp(utcnow())},
            )
            after = event.model_copy(update={"attendees": attendees})
            return RsvpResult(event_id=event_id, attendee_count=len(attendees), seats_left=after.seats_left)

        result = await self._store.run_transaction(_rsvp)
        logger.info(
            "RSVP recorded",
            event_id=event_id,
            user_id=user_id,
            attendee_count=result.attendee_count,
        )
        return result

    async def cancel_rsvp(self, event_id: str, user_id: str) -> RsvpResult:
        """
        Remove ``user_id`` from the event's attendees.

        Raises:
            NotFoundError: event does not exist
            NotRsvped: user was not attending
        """

        async def _cancel(tx: Transaction) -> RsvpResult:
            data = await tx.get(collections.EVENTS, event_id)
            if data is None:
                raise NotFoundError("Event not found.")

            event = Event.from_document(event_id, data)
            if user_id not in event.attendees:
                raise NotRsvped()

            attendees = [attendee for attendee in event.attendees if attendee != user_id]
            tx.update(
                collections.EVENTS,
                event_id,
                {"attendees": attendees, "updated_at": to_timestamp(utcnow())},
            )
            after = event.model_copy(update={"attendees": attendees})
            return RsvpResult(event_id=event_id, attendee_count=len(attendees), seats_left=after.seats_left)

        result = await self._store.run_transaction(_cancel)
        logger.info("RSVP canceled", event_id=event_id, user_id=user_id)
        return result
