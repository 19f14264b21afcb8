# underground/models/api/referral_response.py
from pydantic import BaseModel

from underground.models.domain.referral_domain import Referral, Reward


class InviteResponse(BaseModel):
    """Response for POST /api/referrals/invite. The access code is shown once."""

    message: str
    referral_id: str
    access_code: str


class ReferralListResponse(BaseModel):
    message: str
    referrals: list[Referral]


class ReferralStatusResponse(BaseModel):
    message: str
    referral_id: str
    status: str
    reward_id: str | None = None


class RewardListResponse(BaseModel):
    message: str
    rewards: list[Reward]


class RewardResponse(BaseModel):
    message: str
    reward: Reward
