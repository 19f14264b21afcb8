"""
events.py
---------
Purpose:
    Community events and capacity-bounded RSVPs.

Usage:
    GET    /api/events - Upcoming events (NDA accepted)
    POST   /api/events - Create an event (admin)
    POST   /api/events/{event_id}/rsvp - Take a seat (NDA accepted)
    DELETE /api/events/{event_id}/rsvp - Give the seat back (NDA accepted)
"""

from fastapi import APIRouter, Depends, status

from underground.auth.verify import require_current_admin, require_nda_accepted
from underground.dependencies import get_reservation_service
from underground.models.api.reservation_request import CreateEventRequest
from underground.models.api.reservation_response import (
    EventListResponse,
    EventResponse,
    RsvpResponse,
)
from underground.models.domain.user_domain import Principal
from underground.services.reservation_service import ReservationService

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=EventListResponse)
async def list_events(
    _: Principal = Depends(require_nda_accepted),
    reservations: ReservationService = Depends(get_reservation_service),
):
    events = await reservations.list_upcoming_events()
    return EventListResponse(message="Events retrieved.", events=events)


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    body: CreateEventRequest,
    principal: Principal = Depends(require_current_admin),
    reservations: ReservationService = Depends(get_reservation_service),
):
    event = await reservations.create_event(
        principal.id,
        title=body.title,
        date=body.date,
        description=body.description,
        location=body.location,
        max_capacity=body.max_capacity,
    )
    return EventResponse(message="Event created.", event=event)


@router.post("/{event_id}/rsvp", response_model=RsvpResponse)
async def rsvp(
    event_id: str,
    principal: Principal = Depends(require_nda_accepted),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Raises:
        404: Event not found
        409: Already attending, or the event is full
    """
    result = await reservations.rsvp(event_id, principal.id)
    return RsvpResponse(
        message="RSVP confirmed.",
        event_id=result.event_id,
        attendee_count=result.attendee_count,
        seats_left=result.seats_left,
    )


@router.delete("/{event_id}/rsvp", response_model=RsvpResponse)
async def cancel_rsvp(
    event_id: str,
    principal: Principal = Depends(require_nda_accepted),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Raises:
        400: Not attending this event
        404: Event not found
    """
    result = await reservations.cancel_rsvp(event_id, principal.id)
    return RsvpResponse(
        message="RSVP canceled.",
        event_id=result.event_id,
        attendee_count=result.attendee_count,
        seats_left=result.seats_left,
    )
