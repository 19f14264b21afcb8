"""
Tests for the fire-and-forget audit recorder.
"""

from unittest.mock import AsyncMock

import pytest

from underground.db import collections
from underground.db.documents import StoreError
from underground.infrastructure.audit import AuditLogger


@pytest.mark.asyncio
async def test_log_writes_entry_with_timestamp(store, audit):
    assert await audit.log(collections.ADMIN_ACTIONS, {"action": "x"}) is True

    docs = await store.query(collections.ADMIN_ACTIONS)
    assert docs[0].data["action"] == "x"
    assert "timestamp" in docs[0].data


@pytest.mark.asyncio
async def test_store_failure_is_swallowed(store):
    store.add = AsyncMock(side_effect=StoreError("disk on fire", operation="add"))
    audit = AuditLogger(store)

    assert await audit.log(collections.LOGIN_LOGS, {"email": "a@example.com"}) is False

    # Scheduled writes fail quietly too
    audit.log_login_attempt("a@example.com", "invalid_password")
    audit.log_admin_action("admin-1", "user_soft_deleted", "user", "u1")
    await audit.drain()

    assert store.add.await_count == 3


@pytest.mark.asyncio
async def test_admin_action_entry(store, audit):
    audit.log_admin_action("admin-1", "event_created", "event", "e1", {"title": "Supper"})
    await audit.drain()

    entry = (await store.query(collections.ADMIN_ACTIONS))[0].data
    assert entry["admin_id"] == "admin-1"
    assert entry["target_type"] == "event"
    assert entry["target_id"] == "e1"
    assert entry["metadata"] == {"title": "Supper"}


def test_no_running_loop_drops_entry(store, audit):
    # Must not raise outside an event loop
    audit.log_admin_action("admin-1", "event_created", "event", "e1")

    assert store._collections == {}
