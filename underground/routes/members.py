"""
members.py
----------
Purpose:
    Endpoints for the authenticated member's own account.

Usage:
    1. POST /api/member/acknowledge-nda - Accept the NDA; returns a refreshed token
    2. GET /api/member/nda-status - Whether and when the NDA was accepted
"""

from fastapi import APIRouter, Depends

from underground.auth.verify import get_principal
from underground.dependencies import get_member_service
from underground.models.api.member_response import MemberProfile, NdaStatusResponse, TokenResponse
from underground.models.domain.user_domain import Principal
from underground.services.member_service import MemberService

router = APIRouter(prefix="/api/member", tags=["member"])


@router.post("/acknowledge-nda", response_model=TokenResponse)
async def acknowledge_nda(
    principal: Principal = Depends(get_principal),
    members: MemberService = Depends(get_member_service),
):
    result = await members.acknowledge_nda(principal.id)
    return TokenResponse(
        message="NDA acknowledged.",
        token=result.token,
        user=MemberProfile.from_user(result.user),
    )


@router.get("/nda-status", response_model=NdaStatusResponse)
async def nda_status(
    principal: Principal = Depends(get_principal),
    members: MemberService = Depends(get_member_service),
):
    status = await members.nda_status(principal.id)
    return NdaStatusResponse(
        message="NDA status retrieved.",
        is_nda_accepted=status.is_nda_accepted,
        nda_accepted_at=status.nda_accepted_at,
    )
