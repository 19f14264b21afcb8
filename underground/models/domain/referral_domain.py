from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict

ReferralStatus = Literal[
    "Invited",
    "Application Submitted",
    "Under Review",
    "Interview Scheduled",
    "Approved",
    "Rejected",
]
ReferralRewardStatus = Literal["Pending", "Issued"]
RewardStatus = Literal["Pending", "Issued", "Fulfilled", "Declined"]

# Vetting pipeline, in order
REFERRAL_STATUSES: tuple[str, ...] = get_args(ReferralStatus)
REWARD_STATUSES: tuple[str, ...] = get_args(RewardStatus)


class Referral(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    referrer_id: str
    referred_user_id: str
    referred_name: str
    referred_email: str
    status: ReferralStatus = "Invited"
    reward_status: ReferralRewardStatus = "Pending"
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Referral":
        return cls.model_validate({**data, "id": doc_id})


class Reward(BaseModel):
    """Created exactly once per referral, when it is approved."""

    model_config = ConfigDict(extra="ignore")

    id: str
    referrer_id: str
    referral_id: str
    reward_type: str
    status: RewardStatus = "Pending"
    issued_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Reward":
        return cls.model_validate({**data, "id": doc_id})
