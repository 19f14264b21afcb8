"""
FastAPI dependencies handing routes the engines built at startup.

Every engine is constructed once in the application lifespan with explicit
store, credential and audit handles and kept on ``app.state``.
"""

from fastapi import Request

from underground.services.member_service import MemberService
from underground.services.referral_service import ReferralService
from underground.services.reservation_service import ReservationService
from underground.services.villa_service import VillaService


def get_referral_service(request: Request) -> ReferralService:
    return request.app.state.referrals


def get_member_service(request: Request) -> MemberService:
    return request.app.state.members


def get_reservation_service(request: Request) -> ReservationService:
    return request.app.state.reservations


def get_villa_service(request: Request) -> VillaService:
    return request.app.state.villas
