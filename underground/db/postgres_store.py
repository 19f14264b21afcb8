"""
Document store on a single PostgreSQL JSONB table.

Transactions run at SERIALIZABLE isolation and lock every document they read
(``SELECT ... FOR UPDATE``). Serialization failures, deadlocks and connection
drops abort the attempt as ``TransactionConflict`` so the base class retries it.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.types.json import Jsonb

from underground.db.documents import (
    DELETE_FIELD,
    Document,
    DocumentNotFound,
    DocumentStore,
    Filter,
    StoreError,
    Transaction,
    TransactionConflict,
    new_document_id,
)
from underground.db.pool import DatabasePoolManager
from underground.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        data JSONB NOT NULL,
        version BIGINT NOT NULL DEFAULT 1,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (collection, id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS documents_data_idx ON documents USING GIN (data jsonb_path_ops)",
)

_RANGE_OPS = {"<": "<", "<=": "<=", ">": ">", ">=": ">="}

_RETRYABLE = (pg_errors.SerializationFailure, pg_errors.DeadlockDetected, psycopg.OperationalError)


def _split_fields(fields: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Separate a partial update into values to merge and keys to remove."""
    merged = {k: v for k, v in fields.items() if v is not DELETE_FIELD}
    removed = [k for k, v in fields.items() if v is DELETE_FIELD]
    return merged, removed


def _filter_clause(flt: Filter) -> tuple[sql.Composable, list[Any]]:
    if flt.op == "==":
        return sql.SQL("data @> %s"), [Jsonb({flt.field: flt.value})]

    if flt.op == "!=":
        return sql.SQL("(data ? %s AND NOT data @> %s)"), [flt.field, Jsonb({flt.field: flt.value})]

    if flt.op == "array_contains":
        return sql.SQL("data -> %s @> %s"), [flt.field, Jsonb([flt.value])]

    op = sql.SQL(_RANGE_OPS[flt.op])
    if isinstance(flt.value, bool) or not isinstance(flt.value, (int, float, str)):
        raise StoreError(f"Unsupported range filter value for {flt.field}", operation="query")

    if isinstance(flt.value, str):
        # Byte order, matching how timestamps are encoded
        clause = sql.SQL(
            "(CASE WHEN jsonb_typeof(data -> %s) = 'string' "
            "THEN data ->> %s END) COLLATE \"C\" {} %s"
        ).format(op)
    else:
        clause = sql.SQL(
            "(CASE WHEN jsonb_typeof(data -> %s) = 'number' "
            "THEN (data ->> %s)::numeric END) {} %s"
        ).format(op)
    return clause, [flt.field, flt.field, flt.value]


class PostgresTransaction(Transaction):
    def __init__(self, conn: psycopg.AsyncConnection):
        self._conn = conn
        self._writes: list[tuple[str, str, str, dict[str, Any] | None]] = []

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._conn.cursor() as cur:
            await cur.execute(
                "SELECT data FROM documents WHERE collection = %s AND id = %s FOR UPDATE",
                (collection, doc_id),
            )
            row = await cur.fetchone()
        return row["data"] if row else None

    def create(self, collection: str, data: dict[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or new_document_id()
        self._writes.append(("create", collection, doc_id, data))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._writes.append(("update", collection, doc_id, fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))

    async def flush(self) -> None:
        for kind, collection, doc_id, payload in self._writes:
            if kind == "create":
                cur = await self._conn.execute(
                    """
                    INSERT INTO documents (collection, id, data)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (collection, id) DO NOTHING
                    """,
                    (collection, doc_id, Jsonb(payload)),
                )
                if cur.rowcount == 0:
                    raise TransactionConflict(f"{collection}/{doc_id} already exists")
            elif kind == "update":
                merged, removed = _split_fields(payload)
                cur = await self._conn.execute(
                    """
                    UPDATE documents
                    SET data = (data || %s) - %s::text[],
                        version = version + 1,
                        updated_at = NOW()
                    WHERE collection = %s AND id = %s
                    """,
                    (Jsonb(merged), removed, collection, doc_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFound(collection, doc_id)
            else:
                await self._conn.execute(
                    "DELETE FROM documents WHERE collection = %s AND id = %s",
                    (collection, doc_id),
                )


class PostgresDocumentStore(DocumentStore):
    """DocumentStore backed by the shared psycopg connection pool."""

    def __init__(
        self,
        pool: DatabasePoolManager,
        *,
        max_attempts: int = 5,
        base_delay: float = 0.05,
    ):
        super().__init__(max_attempts=max_attempts, base_delay=base_delay)
        self._pool = pool

    async def initialize(self) -> None:
        """Open the pool and make sure the documents table exists."""
        await self._pool.initialize()
        async with self._guard("create_schema"):
            async with self._pool.connection() as conn:
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        logger.info("Document store ready", backend="postgres")

    async def close(self) -> None:
        await self._pool.close()

    async def health_check(self) -> dict[str, Any]:
        return await self._pool.health_check()

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncGenerator[None, None]:
        try:
            yield
        except psycopg.Error as e:
            logger.error("Document store error", operation=operation, error=str(e))
            raise StoreError(
                f"{operation} failed: {type(e).__name__}",
                operation=operation,
                recoverable=isinstance(e, psycopg.OperationalError),
            ) from e

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._guard("get"):
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT data FROM documents WHERE collection = %s AND id = %s",
                        (collection, doc_id),
                    )
                    row = await cur.fetchone()
        return row["data"] if row else None

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        clauses: list[sql.Composable] = [sql.SQL("collection = %s")]
        params: list[Any] = [collection]

        for flt in filters or []:
            clause, clause_params = _filter_clause(flt)
            clauses.append(clause)
            params.extend(clause_params)

        statement = sql.SQL("SELECT id, data FROM documents WHERE {}").format(
            sql.SQL(" AND ").join(clauses)
        )

        if order_by:
            statement += sql.SQL(" AND data ? %s ORDER BY data -> %s {}").format(
                sql.SQL("DESC" if descending else "ASC")
            )
            params.extend([order_by, order_by])

        if limit is not None:
            statement += sql.SQL(" LIMIT %s")
            params.append(limit)

        async with self._guard("query"):
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(statement, params)
                    rows = await cur.fetchall()

        return [Document(id=row["id"], data=row["data"]) for row in rows]

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        async with self._guard("add"):
            async with self._pool.connection() as conn:
                await conn.execute(
                    "INSERT INTO documents (collection, id, data) VALUES (%s, %s, %s)",
                    (collection, doc_id, Jsonb(data)),
                )
        return doc_id

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        merged, removed = _split_fields(fields)
        async with self._guard("update"):
            async with self._pool.connection() as conn:
                cur = await conn.execute(
                    """
                    UPDATE documents
                    SET data = (data || %s) - %s::text[],
                        version = version + 1,
                        updated_at = NOW()
                    WHERE collection = %s AND id = %s
                    """,
                    (Jsonb(merged), removed, collection, doc_id),
                )
        if cur.rowcount == 0:
            raise DocumentNotFound(collection, doc_id)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._guard("delete"):
            async with self._pool.connection() as conn:
                await conn.execute(
                    "DELETE FROM documents WHERE collection = %s AND id = %s",
                    (collection, doc_id),
                )

    async def _run_attempt(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        try:
            async with self._pool.transaction() as conn:
                await conn.execute("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE")
                tx = PostgresTransaction(conn)
                result = await fn(tx)
                await tx.flush()
            return result
        except _RETRYABLE as e:
            raise TransactionConflict(f"{type(e).__name__}: {e}") from e
        except psycopg.Error as e:
            logger.error("Transaction failed with permanent error", error=str(e))
            raise StoreError(f"Transaction failed: {type(e).__name__}", operation="transaction") from e
