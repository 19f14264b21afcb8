"""
member_service.py
-----------------
Purpose:
    Member account operations: password login, NDA acknowledgement and
    admin soft deletion.

Notes:
    - Every login attempt is audited, whatever the outcome.
    - Users are never hard-deleted; a soft-deleted user cannot log in or claim.
"""

from dataclasses import dataclass
from datetime import datetime

from underground.auth.credentials import CredentialService
from underground.db import collections
from underground.db.documents import DocumentStore, Filter, Transaction, to_timestamp, utcnow
from underground.errors import AuthError, NotFoundError, ValidationError
from underground.infrastructure.audit import AuditLogger, LoginOutcome
from underground.infrastructure.observability.logging import get_logger
from underground.models.domain.user_domain import User
from underground.services.referral_service import normalize_email

logger = get_logger(__name__)

USER_NOT_FOUND = "User not found."


@dataclass(slots=True, frozen=True)
class LoginResult:
    user: User
    token: str


@dataclass(slots=True, frozen=True)
class NdaStatus:
    is_nda_accepted: bool
    nda_accepted_at: datetime | None


class MemberService:
    def __init__(self, store: DocumentStore, credentials: CredentialService, audit: AuditLogger):
        self._store = store
        self._credentials = credentials
        self._audit = audit

    async def get_user(self, user_id: str) -> User | None:
        data = await self._store.get(collections.USERS, user_id)
        if data is None:
            return None
        return User.from_document(user_id, data)

    async def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> LoginResult:
        """
        Exchange email and password for a session token.

        Raises:
            ValidationError: email or password missing
            AuthError: unknown email, deleted account, unactivated account or wrong password
        """
        email = normalize_email(email)
        if not email or not password:
            self._audit.log_login_attempt(email, "invalid_request", ip_address, user_agent, request_id)
            raise ValidationError("Email and password are required.")

        def _reject(outcome: LoginOutcome, message: str | None = None) -> AuthError:
            self._audit.log_login_attempt(email, outcome, ip_address, user_agent, request_id)
            return AuthError(message)

        docs = await self._store.query(collections.USERS, [Filter("email", "==", email)])
        users = [User.from_document(doc.id, doc.data) for doc in docs]
        if not users:
            raise _reject("unknown_email")

        # Prefer the live account if a deleted one shares the address
        user = next((u for u in users if not u.is_deleted), users[0])
        if user.is_deleted:
            raise _reject("account_deleted")
        if not user.is_activated:
            raise _reject("not_activated", "Account not yet activated.")
        if not await self._credentials.verify_password(password, user.password_hash or ""):
            raise _reject("invalid_password")

        self._audit.log_login_attempt(email, "success", ip_address, user_agent, request_id)
        token = self._credentials.issue_token(user.principal())
        logger.info("User logged in", user_id=user.id)
        return LoginResult(user=user, token=token)

    async def acknowledge_nda(self, user_id: str) -> LoginResult:
        """
        Record NDA acceptance and return a token carrying the new claim.

        Acknowledging twice keeps the original acceptance time.
        """

        async def _accept(tx: Transaction) -> User:
            data = await tx.get(collections.USERS, user_id)
            if data is None or data.get("is_deleted", False):
                raise NotFoundError(USER_NOT_FOUND)
            if data.get("is_nda_accepted", False):
                return User.from_document(user_id, data)

            fields = {"is_nda_accepted": True, "nda_accepted_at": to_timestamp(utcnow())}
            tx.update(collections.USERS, user_id, fields)
            return User.from_document(user_id, {**data, **fields})

        user = await self._store.run_transaction(_accept)
        logger.info("NDA acknowledged", user_id=user_id)
        return LoginResult(user=user, token=self._credentials.issue_token(user.principal()))

    async def nda_status(self, user_id: str) -> NdaStatus:
        user = await self.get_user(user_id)
        if user is None or user.is_deleted:
            raise NotFoundError(USER_NOT_FOUND)
        return NdaStatus(is_nda_accepted=user.is_nda_accepted, nda_accepted_at=user.nda_accepted_at)

    async def soft_delete_user(self, user_id: str, admin_id: str) -> None:
        """Mark a user deleted. Raises NotFoundError if missing or already deleted."""

        async def _delete(tx: Transaction) -> None:
            data = await tx.get(collections.USERS, user_id)
            if data is None or data.get("is_deleted", False):
                raise NotFoundError(USER_NOT_FOUND)
            tx.update(
                collections.USERS,
                user_id,
                {"is_deleted": True, "deleted_at": to_timestamp(utcnow())},
            )

        await self._store.run_transaction(_delete)

        logger.info("User soft-deleted", user_id=user_id, admin_id=admin_id)
        self._audit.log_admin_action(admin_id, "user_soft_deleted", "user", user_id)
