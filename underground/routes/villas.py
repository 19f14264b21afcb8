"""
villas.py
---------
Purpose:
    Villa booking management for admins and the member's own booking list.

Usage:
    Admins:
        GET/POST          /api/villas/admin
        GET/PUT/DELETE    /api/villas/admin/{booking_id}
    Members (NDA accepted):
        GET               /api/villas/my-bookings
"""

from fastapi import APIRouter, Depends, status

from underground.auth.verify import require_admin, require_current_admin, require_nda_accepted
from underground.dependencies import get_villa_service
from underground.models.api.member_response import MessageResponse
from underground.models.api.reservation_request import (
    CreateVillaBookingRequest,
    UpdateVillaBookingRequest,
)
from underground.models.api.reservation_response import (
    MemberBookingListResponse,
    VillaBookingListResponse,
    VillaBookingResponse,
)
from underground.models.domain.user_domain import Principal
from underground.services.villa_service import VillaService

router = APIRouter(prefix="/api/villas", tags=["villas"])


@router.get("/admin", response_model=VillaBookingListResponse)
async def list_bookings(
    _: Principal = Depends(require_admin),
    villas: VillaService = Depends(get_villa_service),
):
    bookings = await villas.list_bookings()
    return VillaBookingListResponse(message="Bookings retrieved.", bookings=bookings)


@router.post("/admin", response_model=VillaBookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: CreateVillaBookingRequest,
    principal: Principal = Depends(require_current_admin),
    villas: VillaService = Depends(get_villa_service),
):
    """
    Raises:
        400: Missing required field or check-in not before check-out
    """
    details = body.model_dump(exclude={"member_id", "villa_name", "check_in", "check_out"}, exclude_none=True)
    booking = await villas.create_booking(
        principal.id,
        member_id=body.member_id,
        villa_name=body.villa_name,
        check_in=body.check_in,
        check_out=body.check_out,
        **details,
    )
    return VillaBookingResponse(message="Booking created.", booking=booking)


@router.get("/admin/{booking_id}", response_model=VillaBookingResponse)
async def get_booking(
    booking_id: str,
    _: Principal = Depends(require_admin),
    villas: VillaService = Depends(get_villa_service),
):
    booking = await villas.get_booking(booking_id)
    return VillaBookingResponse(message="Booking retrieved.", booking=booking)


@router.put("/admin/{booking_id}", response_model=VillaBookingResponse)
async def update_booking(
    booking_id: str,
    body: UpdateVillaBookingRequest,
    principal: Principal = Depends(require_current_admin),
    villas: VillaService = Depends(get_villa_service),
):
    changes = body.model_dump(exclude_unset=True)
    booking = await villas.update_booking(booking_id, principal.id, changes)
    return VillaBookingResponse(message="Booking updated.", booking=booking)


@router.delete("/admin/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: str,
    principal: Principal = Depends(require_current_admin),
    villas: VillaService = Depends(get_villa_service),
):
    await villas.delete_booking(booking_id, principal.id)
    return MessageResponse(message="Booking deleted.")


@router.get("/my-bookings", response_model=MemberBookingListResponse)
async def my_bookings(
    principal: Principal = Depends(require_nda_accepted),
    villas: VillaService = Depends(get_villa_service),
):
    bookings = await villas.list_member_bookings(principal.id)
    return MemberBookingListResponse(message="Bookings retrieved.", bookings=bookings)
