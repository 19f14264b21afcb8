"""
credentials.py
--------------
Purpose:
    Password hashing and session-token issuance/verification.

Notes:
    - bcrypt hashing runs in a worker thread; it is deliberately slow.
    - Tokens are HS256 JWTs carrying the user id plus the admin and
      NDA-acceptance claims as of issue time.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt

from underground.models.domain.user_domain import Principal

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


class TokenVerificationError(Exception):
    """Raised when a token is malformed, badly signed or expired."""


def _password_bytes(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]


class CredentialService:
    """Hashes passwords and signs/verifies bearer tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        token_ttl: timedelta = timedelta(hours=24),
        bcrypt_rounds: int = 10,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self.token_ttl = token_ttl
        self._rounds = bcrypt_rounds

    async def hash_password(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, _password_bytes(plaintext), salt)
        return hashed.decode("utf-8")

    async def verify_password(self, plaintext: str, password_hash: str) -> bool:
        try:
            return await asyncio.to_thread(
                bcrypt.checkpw, _password_bytes(plaintext), password_hash.encode("utf-8")
            )
        except ValueError:
            # Malformed stored hash
            return False

    def issue_token(self, claims: Principal, ttl: timedelta | None = None) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": claims.id,
            "is_admin": claims.is_admin,
            "is_nda_accepted": claims.is_nda_accepted,
            "iat": now,
            "exp": now + (ttl or self.token_ttl),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str) -> Principal:
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": True, "require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            raise TokenVerificationError(str(e)) from e

        user_id = decoded.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise TokenVerificationError("Token subject is missing")

        return Principal(
            id=user_id,
            is_admin=bool(decoded.get("is_admin", False)),
            is_nda_accepted=bool(decoded.get("is_nda_accepted", False)),
        )
