"""
referrals.py
------------
Purpose:
    Member invitations and the admin referral/reward pipeline.

Usage:
    Members (NDA accepted):
        POST /api/referrals/invite
        GET  /api/referrals/my-referrals
    Admins:
        GET  /api/referrals/admin
        PUT  /api/referrals/admin/{referral_id}/status
        GET  /api/referrals/admin/rewards
        PUT  /api/referrals/admin/rewards/{reward_id}/status
"""

from fastapi import APIRouter, Depends, status

from underground.auth.verify import require_admin, require_current_admin, require_nda_accepted
from underground.dependencies import get_referral_service
from underground.models.api.referral_request import (
    InviteRequest,
    ReferralStatusRequest,
    RewardStatusRequest,
)
from underground.models.api.referral_response import (
    InviteResponse,
    ReferralListResponse,
    ReferralStatusResponse,
    RewardListResponse,
    RewardResponse,
)
from underground.models.domain.user_domain import Principal
from underground.services.referral_service import ReferralService

router = APIRouter(prefix="/api/referrals", tags=["referrals"])


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite(
    body: InviteRequest,
    principal: Principal = Depends(require_nda_accepted),
    referrals: ReferralService = Depends(get_referral_service),
):
    """
    Invite someone into the community.

    Raises:
        400: Name or email missing
        403: NDA not accepted
        409: Email already belongs to a member or invitee
    """
    result = await referrals.invite(principal.id, body.referred_name, body.referred_email)
    return InviteResponse(
        message="Invitation created.",
        referral_id=result.referral_id,
        access_code=result.access_code,
    )


@router.get("/my-referrals", response_model=ReferralListResponse)
async def my_referrals(
    principal: Principal = Depends(require_nda_accepted),
    referrals: ReferralService = Depends(get_referral_service),
):
    items = await referrals.list_referrals_for_referrer(principal.id)
    return ReferralListResponse(message="Referrals retrieved.", referrals=items)


@router.get("/admin", response_model=ReferralListResponse)
async def list_all_referrals(
    _: Principal = Depends(require_admin),
    referrals: ReferralService = Depends(get_referral_service),
):
    items = await referrals.list_referrals()
    return ReferralListResponse(message="Referrals retrieved.", referrals=items)


@router.put("/admin/{referral_id}/status", response_model=ReferralStatusResponse)
async def update_referral_status(
    referral_id: str,
    body: ReferralStatusRequest,
    principal: Principal = Depends(require_current_admin),
    referrals: ReferralService = Depends(get_referral_service),
):
    """
    Move a referral through vetting. Approval issues the referrer's reward once.

    Raises:
        400: Status outside the vetting pipeline
        404: Referral not found
    """
    update = await referrals.update_referral_status(
        referral_id, body.status, principal.id, reward_type=body.reward_type
    )
    message = "Referral approved and reward issued." if update.reward_id else "Referral status updated."
    return ReferralStatusResponse(
        message=message,
        referral_id=update.referral_id,
        status=update.status,
        reward_id=update.reward_id,
    )


@router.get("/admin/rewards", response_model=RewardListResponse)
async def list_rewards(
    _: Principal = Depends(require_admin),
    referrals: ReferralService = Depends(get_referral_service),
):
    items = await referrals.list_rewards()
    return RewardListResponse(message="Rewards retrieved.", rewards=items)


@router.put("/admin/rewards/{reward_id}/status", response_model=RewardResponse)
async def update_reward_status(
    reward_id: str,
    body: RewardStatusRequest,
    principal: Principal = Depends(require_current_admin),
    referrals: ReferralService = Depends(get_referral_service),
):
    reward = await referrals.update_reward_status(reward_id, body.status, principal.id)
    return RewardResponse(message="Reward status updated.", reward=reward)
