# underground/models/api/member_request.py
from pydantic import BaseModel, Field


class ClaimCodeRequest(BaseModel):
    """Request body for POST /api/auth/claim-code"""

    access_code: str = Field(..., min_length=1, max_length=32)
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login"""

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
