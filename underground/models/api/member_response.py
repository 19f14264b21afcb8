# underground/models/api/member_response.py
from datetime import datetime

from pydantic import BaseModel

from underground.models.domain.user_domain import ConnectionVisibility, User


class MemberProfile(BaseModel):
    """User fields safe to return to the member themselves."""

    id: str
    name: str | None
    email: str
    is_admin: bool
    is_nda_accepted: bool
    connection_interests: list[str]
    connection_visibility: ConnectionVisibility
    activated_at: datetime | None

    @classmethod
    def from_user(cls, user: User) -> "MemberProfile":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            is_admin=user.is_admin,
            is_nda_accepted=user.is_nda_accepted,
            connection_interests=user.connection_interests,
            connection_visibility=user.connection_visibility,
            activated_at=user.activated_at,
        )


class TokenResponse(BaseModel):
    """Response for claim-code, login and acknowledge-nda"""

    message: str
    token: str
    user: MemberProfile


class NdaStatusResponse(BaseModel):
    """Response for GET /api/member/nda-status"""

    message: str
    is_nda_accepted: bool
    nda_accepted_at: datetime | None


class MessageResponse(BaseModel):
    message: str
