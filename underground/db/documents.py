"""
Document store interface shared by the Postgres and in-memory backends.

Collections hold JSON documents addressed by ``(collection, id)``. Multi-document
read-modify-write goes through ``run_transaction``: the callback receives a
``Transaction`` handle, reads the authoritative state through it, and buffers
writes that commit together. A concurrent conflicting writer aborts the attempt
with ``TransactionConflict``; the attempt is then retried with exponential backoff.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, TypeVar

from underground.errors import TransientStoreError
from underground.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "array_contains"]
FILTER_OPS: tuple[str, ...] = ("==", "!=", "<", "<=", ">", ">=", "array_contains")


class _DeleteField:
    """Sentinel: remove the field from the stored document."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


DELETE_FIELD = _DeleteField()


class StoreError(Exception):
    """Store failure that is not a business rule violation."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = False):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class DocumentNotFound(StoreError):
    """Raised by ``update`` when the target document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} does not exist", operation="update")
        self.collection = collection
        self.doc_id = doc_id


class TransactionConflict(StoreError):
    """A concurrent writer touched a document this transaction read."""

    def __init__(self, message: str = "Transaction conflict"):
        super().__init__(message, operation="transaction", recoverable=True)


@dataclass(slots=True, frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(slots=True)
class Document:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_timestamp(value: datetime) -> str:
    """
    Encode a datetime as a fixed-width ISO-8601 UTC string.

    Fixed width keeps lexical order equal to chronological order, which both
    backends rely on for range filters and ordering. Naive datetimes are taken
    as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def new_document_id() -> str:
    return uuid.uuid4().hex


def apply_fields(data: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with ``fields`` merged and DELETE_FIELD keys dropped."""
    merged = dict(data)
    for key, value in fields.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


class Transaction(ABC):
    """Handle passed to ``run_transaction`` callbacks."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Read the authoritative current state of a document."""

    @abstractmethod
    def create(self, collection: str, data: dict[str, Any], doc_id: str | None = None) -> str:
        """Buffer creation of a new document and return its id."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Buffer a partial update of an existing document."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Buffer removal of a document."""


class DocumentStore(ABC):
    """Collection-oriented storage with atomic multi-document transactions."""

    def __init__(self, *, max_attempts: int = 5, base_delay: float = 0.05):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]: ...

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str: ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None: ...

    @abstractmethod
    async def _run_attempt(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run ``fn`` once inside a transaction, raising TransactionConflict on contention."""

    async def health_check(self) -> dict[str, Any]:
        return {"healthy": True, "service": type(self).__name__}

    async def close(self) -> None:
        return None

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """
        Run ``fn`` atomically, retrying on write conflicts.

        ``fn`` may run more than once, so it must not have side effects outside
        the transaction handle. Exceptions raised by ``fn`` itself abort the
        transaction and propagate unchanged.

        Raises:
            TransientStoreError: contention persisted for every attempt
        """
        for attempt in range(self.max_attempts):
            try:
                return await self._run_attempt(fn)
            except TransactionConflict as e:
                if attempt + 1 >= self.max_attempts:
                    logger.error(
                        "Transaction failed after all retries",
                        attempts=self.max_attempts,
                        error=str(e),
                    )
                    raise TransientStoreError() from e

                delay = self.base_delay * (2**attempt)  # Exponential backoff
                logger.warning(
                    "Transaction conflict, retrying",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay=delay,
                )
                await asyncio.sleep(delay)

        raise TransientStoreError()
