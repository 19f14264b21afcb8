"""
AuditLogger - best-effort recording of security-relevant events.

Covers:
- Login attempts (successful or not)
- Admin actions (referral/reward transitions, booking edits, user deletion)

Usage:
    audit_logger.log_login_attempt(
        email="jane@example.com",
        outcome="invalid_password",
        ip_address=request.state.ip_address,
        user_agent=request.state.user_agent,
        request_id=request.state.request_id,
    )

Design Principles:
- Write to both the document store (queryable) and structured logs (searchable)
- Never fail or delay the request: writes are scheduled as background tasks
- Entries are advisory and may be lost; nothing reads them to make decisions
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, Literal

from underground.db import collections
from underground.db.documents import DocumentStore, to_timestamp, utcnow
from underground.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

LoginOutcome = Literal[
    "success",
    "unknown_email",
    "not_activated",
    "account_deleted",
    "invalid_password",
    "invalid_request",
]


class AuditLogger:
    """
    Fire-and-forget audit recorder.

    Scheduled writes are tracked so shutdown (and tests) can wait for them
    with ``drain()``.
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._pending: set[asyncio.Task] = set()

    async def log(self, collection: str, entry: dict[str, Any]) -> bool:
        """
        Write one audit entry.

        Returns:
            True if stored, False if the write failed (never raises)
        """
        entry = {**entry, "timestamp": to_timestamp(utcnow())}

        try:
            await self._store.add(collection, entry)
            return True

        except Exception as e:
            # NEVER fail the request due to audit logging failure
            logger.error(
                "Failed to write audit log",
                error=str(e),
                error_type=type(e).__name__,
                audit_collection=collection,
                fallback_data=entry,
            )
            return False

    def log_login_attempt(
        self,
        email: str,
        outcome: LoginOutcome,
        ip_address: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> None:
        """Record a login attempt without waiting for the write."""
        logger.info(
            "Login attempt",
            email=email,
            outcome=outcome,
            ip_address=ip_address,
            request_id=request_id,
        )
        self._schedule(
            self.log(
                collections.LOGIN_LOGS,
                {
                    "email": email,
                    "outcome": outcome,
                    "success": outcome == "success",
                    "ip_address": ip_address,
                    "user_agent": user_agent,
                    "request_id": request_id,
                },
            )
        )

    def log_admin_action(
        self,
        admin_id: str,
        action: str,
        target_type: str,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an admin mutation without waiting for the write."""
        logger.info(
            "Admin action",
            admin_id=admin_id,
            audit_action=action,
            target_type=target_type,
            target_id=target_id,
        )
        self._schedule(
            self.log(
                collections.ADMIN_ACTIONS,
                {
                    "admin_id": admin_id,
                    "action": action,
                    "target_type": target_type,
                    "target_id": target_id,
                    "metadata": metadata or {},
                },
            )
        )

    def _schedule(self, coro: Coroutine[Any, Any, bool]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, audit entry dropped")
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled audit write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
