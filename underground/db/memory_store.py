"""
In-process document store.

Backs the test suite and ``STORE_BACKEND=memory`` local runs. Transactions are
optimistic: every document carries a version, reads inside a transaction record
the version they saw, and commit aborts with ``TransactionConflict`` if any of
them moved. Commit never awaits, so validation and apply are atomic with
respect to other coroutines on the event loop.
"""

import asyncio
import copy
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from underground.db.documents import (
    DELETE_FIELD,
    Document,
    DocumentNotFound,
    DocumentStore,
    Filter,
    StoreError,
    Transaction,
    TransactionConflict,
    apply_fields,
    new_document_id,
)

T = TypeVar("T")


@dataclass(slots=True)
class _Entry:
    version: int
    data: dict[str, Any]


def _matches(data: dict[str, Any], flt: Filter) -> bool:
    if flt.field not in data:
        return False
    value = data[flt.field]
    try:
        match flt.op:
            case "==":
                return value == flt.value
            case "!=":
                return value != flt.value
            case "<":
                return value < flt.value
            case "<=":
                return value <= flt.value
            case ">":
                return value > flt.value
            case ">=":
                return value >= flt.value
            case "array_contains":
                return isinstance(value, list) and flt.value in value
    except TypeError:
        return False
    return False


class InMemoryTransaction(Transaction):
    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._reads: dict[tuple[str, str], int] = {}
        self._writes: list[tuple[str, str, str, dict[str, Any] | None]] = []

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        # Suspension point, as a network round trip would be
        await asyncio.sleep(0)
        entry = self._store._entry(collection, doc_id)
        self._reads[(collection, doc_id)] = entry.version if entry else 0
        return copy.deepcopy(entry.data) if entry else None

    def create(self, collection: str, data: dict[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or new_document_id()
        self._writes.append(("create", collection, doc_id, copy.deepcopy(data)))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._writes.append(("update", collection, doc_id, copy.deepcopy(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))

    def commit(self) -> None:
        for (collection, doc_id), seen in self._reads.items():
            entry = self._store._entry(collection, doc_id)
            current = entry.version if entry else 0
            if current != seen:
                raise TransactionConflict(f"{collection}/{doc_id} changed during transaction")

        for kind, collection, doc_id, payload in self._writes:
            exists = self._store._entry(collection, doc_id) is not None
            if kind == "create" and exists:
                raise TransactionConflict(f"{collection}/{doc_id} already exists")
            if kind == "update" and not exists:
                raise DocumentNotFound(collection, doc_id)

        for kind, collection, doc_id, payload in self._writes:
            if kind == "create":
                self._store._put(collection, doc_id, payload)
            elif kind == "update":
                entry = self._store._entry(collection, doc_id)
                self._store._put(collection, doc_id, apply_fields(entry.data, payload))
            else:
                self._store._remove(collection, doc_id)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed DocumentStore with optimistic transactions."""

    def __init__(self, *, max_attempts: int = 5, base_delay: float = 0.0):
        super().__init__(max_attempts=max_attempts, base_delay=base_delay)
        self._collections: dict[str, dict[str, _Entry]] = {}
        self._clock = 0

    def _entry(self, collection: str, doc_id: str) -> _Entry | None:
        return self._collections.get(collection, {}).get(doc_id)

    def _put(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._clock += 1
        self._collections.setdefault(collection, {})[doc_id] = _Entry(self._clock, data)

    def _remove(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        entry = self._entry(collection, doc_id)
        return copy.deepcopy(entry.data) if entry else None

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        rows = [
            Document(id=doc_id, data=copy.deepcopy(entry.data))
            for doc_id, entry in self._collections.get(collection, {}).items()
            if all(_matches(entry.data, flt) for flt in filters or [])
        ]

        if order_by:
            rows = [row for row in rows if row.data.get(order_by) is not None]
            rows.sort(key=lambda row: row.data[order_by], reverse=descending)

        if limit is not None:
            rows = rows[:limit]
        return rows

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        if any(value is DELETE_FIELD for value in data.values()):
            raise StoreError("DELETE_FIELD is only valid in updates", operation="add")
        doc_id = new_document_id()
        self._put(collection, doc_id, copy.deepcopy(data))
        return doc_id

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        entry = self._entry(collection, doc_id)
        if entry is None:
            raise DocumentNotFound(collection, doc_id)
        self._put(collection, doc_id, apply_fields(entry.data, copy.deepcopy(fields)))

    async def delete(self, collection: str, doc_id: str) -> None:
        self._remove(collection, doc_id)

    async def _run_attempt(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        tx = InMemoryTransaction(self)
        result = await fn(tx)
        tx.commit()
        return result
