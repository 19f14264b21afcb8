from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ConnectionVisibility = Literal["all", "shared-interest", "none"]


@dataclass(slots=True, frozen=True)
class Principal:
    """Authenticated identity rebuilt from token claims on every request."""

    id: str
    is_admin: bool = False
    is_nda_accepted: bool = False


class User(BaseModel):
    """Member record. Invited users hold an access code and no password."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str | None = None
    email: str
    password_hash: str | None = None
    access_code: str | None = None
    redeemed_access_code: str | None = None
    is_claimed: bool = False
    is_admin: bool = False
    is_nda_accepted: bool = False
    nda_accepted_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    connection_interests: list[str] = Field(default_factory=list)
    connection_visibility: ConnectionVisibility = "all"
    referred_by: str | None = None
    created_at: datetime | None = None
    activated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "User":
        return cls.model_validate({**data, "id": doc_id})

    @property
    def is_activated(self) -> bool:
        return self.is_claimed and bool(self.password_hash)

    def principal(self) -> Principal:
        return Principal(
            id=self.id,
            is_admin=self.is_admin,
            is_nda_accepted=self.is_nda_accepted,
        )
