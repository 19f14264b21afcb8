"""
auth.py
-------
Purpose:
    Public account endpoints: activating an invitation with its access code,
    and password login.

Usage:
    1. POST /api/auth/claim-code - Set a password with the emailed code, get a token
    2. POST /api/auth/login - Exchange email and password for a token
"""

from fastapi import APIRouter, Depends, Request

from underground.dependencies import get_member_service, get_referral_service
from underground.models.api.member_request import ClaimCodeRequest, LoginRequest
from underground.models.api.member_response import MemberProfile, TokenResponse
from underground.services.member_service import MemberService
from underground.services.referral_service import ReferralService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/claim-code", response_model=TokenResponse)
async def claim_code(
    body: ClaimCodeRequest,
    referrals: ReferralService = Depends(get_referral_service),
):
    """
    Activate an invited account.

    Raises:
        400: Missing code or password
        404: Unknown access code
        409: Access code already used
    """
    result = await referrals.claim_code(body.access_code, body.password)
    return TokenResponse(
        message="Account activated successfully.",
        token=result.token,
        user=MemberProfile.from_user(result.user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    members: MemberService = Depends(get_member_service),
):
    """
    Log in with email and password.

    Raises:
        401: Unknown email, unactivated or deleted account, wrong password
    """
    result = await members.login(
        body.email,
        body.password,
        ip_address=getattr(request.state, "ip_address", None),
        user_agent=getattr(request.state, "user_agent", None),
        request_id=getattr(request.state, "request_id", None),
    )
    return TokenResponse(
        message="Login successful.",
        token=result.token,
        user=MemberProfile.from_user(result.user),
    )
