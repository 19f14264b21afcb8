"""
Tests for the in-memory document store and the shared transaction retry loop.
"""

import asyncio
from datetime import UTC, datetime, timedelta, timezone

import pytest

from underground.db.documents import (
    DELETE_FIELD,
    DocumentNotFound,
    Filter,
    StoreError,
    to_timestamp,
)
from underground.db.memory_store import InMemoryDocumentStore
from underground.errors import NotFoundError, TransientStoreError


@pytest.mark.asyncio
async def test_add_get_update_delete(store):
    doc_id = await store.add("things", {"name": "a", "count": 1})

    assert await store.get("things", doc_id) == {"name": "a", "count": 1}

    await store.update("things", doc_id, {"count": 2})
    assert (await store.get("things", doc_id))["count"] == 2

    await store.delete("things", doc_id)
    assert await store.get("things", doc_id) is None


@pytest.mark.asyncio
async def test_delete_field_removes_key(store):
    doc_id = await store.add("things", {"name": "a", "code": "XYZ"})

    await store.update("things", doc_id, {"code": DELETE_FIELD})

    data = await store.get("things", doc_id)
    assert "code" not in data
    assert data["name"] == "a"


@pytest.mark.asyncio
async def test_add_rejects_delete_field(store):
    with pytest.raises(StoreError):
        await store.add("things", {"code": DELETE_FIELD})


@pytest.mark.asyncio
async def test_update_missing_document(store):
    with pytest.raises(DocumentNotFound):
        await store.update("things", "missing", {"x": 1})


@pytest.mark.asyncio
async def test_returned_documents_are_copies(store):
    doc_id = await store.add("things", {"tags": ["a"]})

    data = await store.get("things", doc_id)
    data["tags"].append("b")

    assert (await store.get("things", doc_id))["tags"] == ["a"]


@pytest.mark.asyncio
async def test_query_filters(store):
    await store.add("things", {"kind": "x", "n": 1, "tags": ["red"]})
    await store.add("things", {"kind": "y", "n": 2, "tags": ["blue"]})
    await store.add("things", {"kind": "x", "n": 3})

    kinds = await store.query("things", [Filter("kind", "==", "x")])
    assert sorted(d.data["n"] for d in kinds) == [1, 3]

    not_x = await store.query("things", [Filter("kind", "!=", "x")])
    assert [d.data["n"] for d in not_x] == [2]

    big = await store.query("things", [Filter("n", ">=", 2)])
    assert sorted(d.data["n"] for d in big) == [2, 3]

    red = await store.query("things", [Filter("tags", "array_contains", "red")])
    assert [d.data["n"] for d in red] == [1]


@pytest.mark.asyncio
async def test_query_order_and_limit(store):
    for n in (2, 3, 1):
        await store.add("things", {"n": n})
    await store.add("things", {"other": True})

    ascending = await store.query("things", order_by="n")
    assert [d.data["n"] for d in ascending] == [1, 2, 3]

    top = await store.query("things", order_by="n", descending=True, limit=2)
    assert [d.data["n"] for d in top] == [3, 2]


def test_filter_rejects_unknown_operator():
    with pytest.raises(ValueError):
        Filter("n", "~=", 1)


def test_timestamps_sort_chronologically():
    earlier = datetime(2025, 1, 1, 9, 0, tzinfo=UTC)
    later = earlier + timedelta(microseconds=1)
    offset = datetime(2025, 1, 1, 10, 30, tzinfo=timezone(timedelta(hours=2)))

    assert to_timestamp(earlier) < to_timestamp(later)
    assert len(to_timestamp(earlier)) == len(to_timestamp(later))
    # 10:30+02:00 is 08:30 UTC
    assert to_timestamp(offset) < to_timestamp(earlier)
    assert to_timestamp(datetime(2025, 1, 1, 9, 0)) == to_timestamp(earlier)


@pytest.mark.asyncio
async def test_transaction_commits_all_writes(store):
    async def _fn(tx):
        a = tx.create("things", {"n": 1})
        b = tx.create("things", {"n": 2})
        return a, b

    a, b = await store.run_transaction(_fn)

    assert (await store.get("things", a))["n"] == 1
    assert (await store.get("things", b))["n"] == 2


@pytest.mark.asyncio
async def test_transaction_error_discards_writes(store):
    doc_id = await store.add("things", {"n": 1})

    async def _fn(tx):
        tx.update("things", doc_id, {"n": 99})
        tx.create("things", {"n": 100})
        raise NotFoundError("nope")

    with pytest.raises(NotFoundError):
        await store.run_transaction(_fn)

    assert (await store.get("things", doc_id))["n"] == 1
    assert len(await store.query("things")) == 1


@pytest.mark.asyncio
async def test_concurrent_increments_are_serialized(store):
    doc_id = await store.add("counters", {"value": 0})

    async def _increment(tx):
        data = await tx.get("counters", doc_id)
        tx.update("counters", doc_id, {"value": data["value"] + 1})

    await asyncio.gather(*(store.run_transaction(_increment) for _ in range(5)))

    assert (await store.get("counters", doc_id))["value"] == 5


@pytest.mark.asyncio
async def test_exhausted_retries_raise_transient_error():
    store = InMemoryDocumentStore(max_attempts=2)
    doc_id = await store.add("counters", {"value": 0})
    attempts = 0

    async def _always_conflicts(tx):
        nonlocal attempts
        attempts += 1
        data = await tx.get("counters", doc_id)
        # A write outside the transaction moves the version it read
        await store.update("counters", doc_id, {"value": data["value"] + 10})
        tx.update("counters", doc_id, {"value": -1})

    with pytest.raises(TransientStoreError):
        await store.run_transaction(_always_conflicts)

    assert attempts == 2
    assert (await store.get("counters", doc_id))["value"] == 20
