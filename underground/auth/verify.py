"""
verify.py
---------
Purpose:
    Access control gate for protected routes.

Notes:
    - The Principal is rebuilt from token claims alone; admin and NDA checks
      are pure predicates over those claims.
    - `require_current_admin` additionally re-reads the user record, so a
      revoked or deleted admin is stopped before any state-changing action
      even while their token is still valid.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from underground.auth.credentials import CredentialService, TokenVerificationError
from underground.db import collections
from underground.errors import Forbidden, InvalidToken, Unauthenticated
from underground.infrastructure.observability.logging import get_logger
from underground.models.domain.user_domain import Principal

logger = get_logger(__name__)

ADMIN_REQUIRED = "Access denied. Admin privileges are required."
NDA_REQUIRED = "Access denied. You must accept the NDA to proceed."

_security = HTTPBearer(auto_error=False)


def authenticate(credentials: CredentialService, token: str | None) -> Principal:
    if not token:
        raise Unauthenticated()
    try:
        return credentials.verify_token(token)
    except TokenVerificationError as e:
        logger.info("Token rejected", reason=str(e))
        raise InvalidToken() from e


def ensure_admin(principal: Principal) -> Principal:
    if not principal.is_admin:
        raise Forbidden(ADMIN_REQUIRED)
    return principal


def ensure_nda_accepted(principal: Principal) -> Principal:
    if not principal.is_nda_accepted:
        raise Forbidden(NDA_REQUIRED)
    return principal


def get_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> Principal:
    token = credentials.credentials if credentials else None
    return authenticate(request.app.state.credentials, token)


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    return ensure_admin(principal)


def require_nda_accepted(principal: Principal = Depends(get_principal)) -> Principal:
    return ensure_nda_accepted(principal)


async def require_current_admin(
    request: Request,
    principal: Principal = Depends(require_admin),
) -> Principal:
    """Admin check against the stored user record, for state-changing operations."""
    data = await request.app.state.store.get(collections.USERS, principal.id)
    if data is None or data.get("is_deleted", False) or not data.get("is_admin", False):
        logger.warning("Stale admin token rejected", user_id=principal.id)
        raise Forbidden(ADMIN_REQUIRED)
    return principal
