# underground/models/api/referral_request.py
from pydantic import BaseModel, Field


class InviteRequest(BaseModel):
    """Request body for POST /api/referrals/invite"""

    referred_name: str = Field(..., min_length=1, max_length=200)
    referred_email: str = Field(..., min_length=3, max_length=320)


class ReferralStatusRequest(BaseModel):
    """Request body for PUT /api/referrals/admin/{referral_id}/status"""

    status: str = Field(..., min_length=1)
    reward_type: str | None = Field(None, max_length=200, description="Defaults to the standard reward")


class RewardStatusRequest(BaseModel):
    """Request body for PUT /api/referrals/admin/rewards/{reward_id}/status"""

    status: str = Field(..., min_length=1)
