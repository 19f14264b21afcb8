"""
Tests for the PostgreSQL document store that need no database: filter
translation, partial-update splitting and the transaction retry mapping.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from psycopg import errors as pg_errors
from psycopg import sql

from underground.db.documents import (
    DELETE_FIELD,
    DocumentNotFound,
    Filter,
    StoreError,
    TransactionConflict,
)
from underground.db.postgres_store import (
    PostgresDocumentStore,
    PostgresTransaction,
    _filter_clause,
    _split_fields,
)
from underground.errors import TransientStoreError


class FakePool:
    """Stands in for DatabasePoolManager; every transaction gets the same connection."""

    def __init__(self, conn):
        self.conn = conn
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn


def _conn(execute_side_effect=None, rowcount=1):
    conn = MagicMock()
    conn.execute = AsyncMock(
        return_value=MagicMock(rowcount=rowcount), side_effect=execute_side_effect
    )
    return conn


def test_split_fields_separates_removed_keys():
    merged, removed = _split_fields({"status": "used", "code": DELETE_FIELD, "note": None})

    assert merged == {"status": "used", "note": None}
    assert removed == ["code"]


def test_equality_filter_uses_containment():
    clause, params = _filter_clause(Filter("email", "==", "jane@example.com"))

    assert clause == sql.SQL("data @> %s")
    assert params[0].obj == {"email": "jane@example.com"}


def test_inequality_filter_requires_field_present():
    clause, params = _filter_clause(Filter("status", "!=", "used"))

    assert clause == sql.SQL("(data ? %s AND NOT data @> %s)")
    assert params[0] == "status"
    assert params[1].obj == {"status": "used"}


def test_array_contains_filter():
    clause, params = _filter_clause(Filter("attendees", "array_contains", "u1"))

    assert clause == sql.SQL("data -> %s @> %s")
    assert params[0] == "attendees"
    assert params[1].obj == ["u1"]


def test_string_range_filter_compares_bytewise():
    clause, params = _filter_clause(Filter("date", ">=", "2026-01-01T00:00:00.000000Z"))

    assert 'COLLATE "C"' in repr(clause)
    assert "::numeric" not in repr(clause)
    assert params == ["date", "date", "2026-01-01T00:00:00.000000Z"]


def test_numeric_range_filter_casts_to_numeric():
    clause, params = _filter_clause(Filter("count", "<", 3))

    assert "::numeric" in repr(clause)
    assert "COLLATE" not in repr(clause)
    assert params == ["count", "count", 3]


@pytest.mark.parametrize("value", [True, None, ["a"]])
def test_range_filter_rejects_unsupported_values(value):
    with pytest.raises(StoreError):
        _filter_clause(Filter("count", ">", value))


@pytest.mark.asyncio
async def test_flush_update_merges_and_removes_fields():
    conn = _conn()
    tx = PostgresTransaction(conn)
    tx.update("referral_codes", "abc", {"status": "used", "code": DELETE_FIELD})

    await tx.flush()

    params = conn.execute.await_args.args[1]
    assert params[0].obj == {"status": "used"}
    assert params[1] == ["code"]
    assert params[2:] == ("referral_codes", "abc")


@pytest.mark.asyncio
async def test_flush_update_of_missing_document_raises():
    tx = PostgresTransaction(_conn(rowcount=0))
    tx.update("events", "missing", {"title": "x"})

    with pytest.raises(DocumentNotFound):
        await tx.flush()


@pytest.mark.asyncio
async def test_flush_create_of_existing_id_conflicts():
    tx = PostgresTransaction(_conn(rowcount=0))
    tx.create("users", {"email": "jane@example.com"}, doc_id="u1")

    with pytest.raises(TransactionConflict):
        await tx.flush()


@pytest.mark.asyncio
async def test_serialization_failure_retries_then_gives_up():
    conn = _conn(execute_side_effect=pg_errors.SerializationFailure("could not serialize access"))
    pool = FakePool(conn)
    store = PostgresDocumentStore(pool, max_attempts=3, base_delay=0)
    fn = AsyncMock(return_value="unreachable")

    with pytest.raises(TransientStoreError):
        await store.run_transaction(fn)

    assert pool.transactions == 3
    assert conn.execute.await_count == 3
    fn.assert_not_awaited()


@pytest.mark.asyncio
async def test_serialization_failure_then_success_commits():
    ok = MagicMock(rowcount=1)
    conn = _conn(execute_side_effect=[pg_errors.SerializationFailure("retry"), ok, ok])
    pool = FakePool(conn)
    store = PostgresDocumentStore(pool, max_attempts=3, base_delay=0)

    async def _bump(tx):
        tx.update("events", "e1", {"title": "Dinner"})
        return "done"

    assert await store.run_transaction(_bump) == "done"
    assert pool.transactions == 2
    statements = [call.args[0] for call in conn.execute.await_args_list]
    assert statements[1] == "SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"
    assert "UPDATE documents" in statements[2]


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    conn = _conn(execute_side_effect=pg_errors.UniqueViolation("duplicate key"))
    pool = FakePool(conn)
    store = PostgresDocumentStore(pool, max_attempts=3, base_delay=0)

    with pytest.raises(StoreError) as exc_info:
        await store.run_transaction(AsyncMock())

    assert not isinstance(exc_info.value, TransactionConflict)
    assert exc_info.value.operation == "transaction"
    assert pool.transactions == 1
