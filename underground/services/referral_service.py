"""
Referral and reward engine.

Handles member invitations, access-code claiming, the vetting pipeline for
referrals, and reward issuance. The approval transition creates the reward and
flips the referral's reward status inside one store transaction, so a retried
or raced approval can never issue a second reward.
"""

import secrets
from dataclasses import dataclass

from underground.auth.credentials import CredentialService
from underground.db import collections
from underground.db.documents import (
    DELETE_FIELD,
    DocumentStore,
    Filter,
    Transaction,
    to_timestamp,
    utcnow,
)
from underground.errors import (
    AlreadyClaimed,
    EmailAlreadyInvited,
    InvalidStatus,
    NotFoundError,
    ValidationError,
)
from underground.infrastructure.audit import AuditLogger
from underground.infrastructure.observability.logging import get_logger
from underground.models.domain.referral_domain import (
    REFERRAL_STATUSES,
    REWARD_STATUSES,
    Referral,
    Reward,
)
from underground.models.domain.user_domain import User

logger = get_logger(__name__)

# No 0/O or 1/I: codes are typed by hand
ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ACCESS_CODE_LENGTH = 8
ACCESS_CODE_ATTEMPTS = 3


def generate_access_code() -> str:
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_access_code(code: str | None) -> str:
    return (code or "").strip().upper()


@dataclass(slots=True, frozen=True)
class InviteResult:
    referral_id: str
    user_id: str
    access_code: str


@dataclass(slots=True, frozen=True)
class ClaimResult:
    user: User
    token: str


@dataclass(slots=True, frozen=True)
class ReferralStatusUpdate:
    referral_id: str
    status: str
    reward_id: str | None  # set only when this call issued the reward


class ReferralService:
    """Invitations, access-code activation, referral vetting and rewards."""

    def __init__(
        self,
        store: DocumentStore,
        credentials: CredentialService,
        audit: AuditLogger,
        *,
        default_reward_type: str = "Standard Referral Reward",
    ):
        self._store = store
        self._credentials = credentials
        self._audit = audit
        self.default_reward_type = default_reward_type

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(self, referrer_id: str, referred_name: str, referred_email: str) -> InviteResult:
        """
        Create an invited user and its referral record.

        Raises:
            ValidationError: name or email missing/malformed
            EmailAlreadyInvited: a non-deleted user already has this email
        """
        name = (referred_name or "").strip()
        email = normalize_email(referred_email)
        if not name or not email:
            raise ValidationError("The referred person's name and email are required.")
        if "@" not in email:
            raise ValidationError("A valid email address is required.")

        # Best-effort: two simultaneous invites for one email can both pass this check
        if await self.find_active_user_by_email(email) is not None:
            logger.info("Invite rejected, email already present", referrer_id=referrer_id)
            raise EmailAlreadyInvited()

        access_code = await self._unused_access_code()
        now = to_timestamp(utcnow())

        async def _create(tx: Transaction) -> tuple[str, str]:
            user_id = tx.create(
                collections.USERS,
                {
                    "name": name,
                    "email": email,
                    "access_code": access_code,
                    "is_claimed": False,
                    "is_admin": False,
                    "is_nda_accepted": False,
                    "is_deleted": False,
                    "connection_interests": [],
                    "connection_visibility": "all",
                    "referred_by": referrer_id,
                    "created_at": now,
                },
            )
            referral_id = tx.create(
                collections.REFERRALS,
                {
                    "referrer_id": referrer_id,
                    "referred_user_id": user_id,
                    "referred_name": name,
                    "referred_email": email,
                    "status": "Invited",
                    "reward_status": "Pending",
                    "created_at": now,
                    "updated_at": now,
                },
            )
            return user_id, referral_id

        user_id, referral_id = await self._store.run_transaction(_create)

        logger.info(
            "Referral invitation created",
            referrer_id=referrer_id,
            referral_id=referral_id,
            user_id=user_id,
        )
        return InviteResult(referral_id=referral_id, user_id=user_id, access_code=access_code)

    async def find_active_user_by_email(self, email: str) -> User | None:
        docs = await self._store.query(
            collections.USERS, [Filter("email", "==", normalize_email(email))]
        )
        for doc in docs:
            if not doc.data.get("is_deleted", False):
                return User.from_document(doc.id, doc.data)
        return None

    async def _unused_access_code(self) -> str:
        """Draw a code, re-rolling if it is already pending on another user."""
        code = generate_access_code()
        for _ in range(ACCESS_CODE_ATTEMPTS - 1):
            clash = await self._store.query(
                collections.USERS, [Filter("access_code", "==", code)], limit=1
            )
            if not clash:
                break
            logger.warning("Access code collision, regenerating")
            code = generate_access_code()
        return code

    # ------------------------------------------------------------------
    # Access codes
    # ------------------------------------------------------------------

    async def claim_code(self, access_code: str, password: str) -> ClaimResult:
        """
        Activate an invited user with a chosen password.

        The code is removed from the user record in the same write that sets
        the password, under the precondition that the user is still unclaimed
        and still holds this code.

        Raises:
            ValidationError: code or password missing
            NotFoundError: no user was ever issued this code
            AlreadyClaimed: the code has been redeemed
        """
        code = normalize_access_code(access_code)
        if not code or not password:
            raise ValidationError("Access code and password are required.")

        matches = await self._store.query(
            collections.USERS, [Filter("access_code", "==", code)], limit=1
        )
        if not matches:
            redeemed = await self._store.query(
                collections.USERS, [Filter("redeemed_access_code", "==", code)], limit=1
            )
            if redeemed:
                raise AlreadyClaimed()
            raise NotFoundError("Invalid or expired access code.")

        candidate = matches[0]
        if candidate.data.get("is_deleted", False):
            raise NotFoundError("Invalid or expired access code.")
        if candidate.data.get("is_claimed", False):
            raise AlreadyClaimed()

        password_hash = await self._credentials.hash_password(password)
        activated_at = to_timestamp(utcnow())

        async def _claim(tx: Transaction) -> User:
            data = await tx.get(collections.USERS, candidate.id)
            if data is None or data.get("is_deleted", False):
                raise NotFoundError("Invalid or expired access code.")
            if data.get("is_claimed", False) or data.get("access_code") != code:
                raise AlreadyClaimed()

            fields = {
                "password_hash": password_hash,
                "is_claimed": True,
                "access_code": DELETE_FIELD,
                "redeemed_access_code": code,
                "activated_at": activated_at,
            }
            tx.update(collections.USERS, candidate.id, fields)

            data.pop("access_code", None)
            data.update({k: v for k, v in fields.items() if v is not DELETE_FIELD})
            return User.from_document(candidate.id, data)

        user = await self._store.run_transaction(_claim)
        token = self._credentials.issue_token(user.principal())

        logger.info("Access code claimed", user_id=user.id)
        return ClaimResult(user=user, token=token)

    # ------------------------------------------------------------------
    # Referral vetting and rewards
    # ------------------------------------------------------------------

    async def list_referrals_for_referrer(self, referrer_id: str) -> list[Referral]:
        docs = await self._store.query(
            collections.REFERRALS,
            [Filter("referrer_id", "==", referrer_id)],
            order_by="created_at",
            descending=True,
        )
        return [Referral.from_document(doc.id, doc.data) for doc in docs]

    async def list_referrals(self) -> list[Referral]:
        docs = await self._store.query(collections.REFERRALS, order_by="created_at", descending=True)
        return [Referral.from_document(doc.id, doc.data) for doc in docs]

    async def list_rewards(self) -> list[Reward]:
        docs = await self._store.query(collections.REWARDS, order_by="created_at", descending=True)
        return [Reward.from_document(doc.id, doc.data) for doc in docs]

    async def update_referral_status(
        self,
        referral_id: str,
        new_status: str,
        admin_id: str,
        reward_type: str | None = None,
    ) -> ReferralStatusUpdate:
        """
        Move a referral along the vetting pipeline.

        Approving a referral whose reward is still pending creates the Reward
        and marks the referral's reward as issued in the same transaction.
        Approving again (or concurrently) only rewrites the status.

        Raises:
            InvalidStatus: new_status is not a vetting pipeline value
            NotFoundError: referral does not exist
        """
        if new_status not in REFERRAL_STATUSES:
            raise InvalidStatus("A valid status from the vetting process is required.")

        reward_type = (reward_type or "").strip() or self.default_reward_type

        async def _transition(tx: Transaction) -> str | None:
            data = await tx.get(collections.REFERRALS, referral_id)
            if data is None:
                raise NotFoundError("Referral not found.")

            now = to_timestamp(utcnow())
            fields = {"status": new_status, "updated_at": now, "updated_by": admin_id}

            if new_status == "Approved" and data.get("reward_status", "Pending") == "Pending":
                reward_id = tx.create(
                    collections.REWARDS,
                    {
                        "referrer_id": data["referrer_id"],
                        "referral_id": referral_id,
                        "reward_type": reward_type,
                        "status": "Pending",
                        "issued_by": admin_id,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
                tx.update(collections.REFERRALS, referral_id, {**fields, "reward_status": "Issued"})
                return reward_id

            tx.update(collections.REFERRALS, referral_id, fields)
            return None

        reward_id = await self._store.run_transaction(_transition)

        if reward_id:
            logger.info(
                "Referral approved, reward issued",
                referral_id=referral_id,
                reward_id=reward_id,
                admin_id=admin_id,
            )
        else:
            logger.info(
                "Referral status updated",
                referral_id=referral_id,
                status=new_status,
                admin_id=admin_id,
            )

        self._audit.log_admin_action(
            admin_id,
            "referral_status_updated",
            "referral",
            referral_id,
            {"status": new_status, "reward_id": reward_id},
        )
        return ReferralStatusUpdate(referral_id=referral_id, status=new_status, reward_id=reward_id)

    async def update_reward_status(self, reward_id: str, new_status: str, admin_id: str) -> Reward:
        """
        Set a reward's status (e.g. Pending -> Fulfilled).

        Raises:
            InvalidStatus: new_status is not a reward status
            NotFoundError: reward does not exist
        """
        if new_status not in REWARD_STATUSES:
            raise InvalidStatus("A valid reward status is required.")

        async def _update(tx: Transaction) -> Reward:
            data = await tx.get(collections.REWARDS, reward_id)
            if data is None:
                raise NotFoundError("Reward not found.")

            fields = {
                "status": new_status,
                "updated_at": to_timestamp(utcnow()),
                "updated_by": admin_id,
            }
            tx.update(collections.REWARDS, reward_id, fields)
            return Reward.from_document(reward_id, {**data, **fields})

        reward = await self._store.run_transaction(_update)

        logger.info("Reward status updated", reward_id=reward_id, status=new_status, admin_id=admin_id)
        self._audit.log_admin_action(
            admin_id, "reward_status_updated", "reward", reward_id, {"status": new_status}
        )
        return reward

