"""DocumentStore interface for keyed documents and atomic transactions.

This module defines the abstract DocumentStore interface consumed by the
booking engine. Documents are plain dictionaries addressed by slash-separated
paths (``tenants/acme/bookings/b1``); the parent path of a document is its
collection.

Example:
    ```python
    from valetflow.domain.interfaces.document_store import DocumentStore
    from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore

    store: DocumentStore = InMemoryDocumentStore()

    await store.set("tenants/acme/locations/lot/spots/A1", {"status": "available"})

    async def occupy(tx: Transaction) -> None:
        spot = await tx.get("tenants/acme/locations/lot/spots/A1")
        if spot["status"] == "available":
            tx.update("tenants/acme/locations/lot/spots/A1", {"status": "occupied"})

    await store.run_transaction(occupy)
    ```
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Increment:
    """Write sentinel that adds ``amount`` to a numeric field.

    A missing field counts as zero. Usable in ``set(..., merge=True)`` and in
    ``update``.
    """

    __slots__ = ("amount",)

    def __init__(self, amount: int | float) -> None:
        self.amount = amount

    def __repr__(self) -> str:
        return f"Increment({self.amount!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Increment) and other.amount == self.amount

    def __hash__(self) -> int:
        return hash(("Increment", self.amount))


def parent_path(path: str) -> str:
    """Collection path of a document path."""
    return path.rsplit("/", 1)[0] if "/" in path else ""


def document_id(path: str) -> str:
    """Last segment of a document path."""
    return path.rsplit("/", 1)[-1]


class DocumentSnapshot(BaseModel):
    """A document read from the store.

    Attributes:
        path: Full document path.
        data: Document fields.
    """

    path: str = Field(..., min_length=1, description="Full document path")
    data: dict[str, Any] = Field(default_factory=dict, description="Document fields")

    model_config = ConfigDict(frozen=True)

    @property
    def id(self) -> str:
        return document_id(self.path)


class DocumentQuery(BaseModel):
    """Query over the direct children of one collection.

    Attributes:
        collection: Collection path, e.g. ``tenants/acme/bookings``.
        filters: Field equality filters, all of which must match.
        order_by: Field to order by. Documents without the field sort first.
        descending: Reverse the ordering.
        limit: Maximum number of documents returned.
        start_after: Document id inside ``collection``; results begin strictly
            after that document in the requested ordering. Ignored when the
            document does not exist.

    Example:
        ```python
        query = DocumentQuery(
            collection="tenants/acme/bookings",
            filters={"status": "Parked"},
            order_by="created_at",
            descending=True,
            limit=26,
        )
        snapshots = await store.query(query)
        ```
    """

    collection: str = Field(..., min_length=1, description="Collection path")
    filters: dict[str, Any] = Field(default_factory=dict, description="Equality filters")
    order_by: str | None = Field(default=None, description="Field to order by")
    descending: bool = Field(default=False, description="Descending order")
    limit: int | None = Field(default=None, ge=1, description="Maximum results")
    start_after: str | None = Field(default=None, description="Cursor document id")

    model_config = ConfigDict(frozen=True)


class Transaction(ABC):
    """Transaction context handed to a ``run_transaction`` callable.

    Reads go to the store; writes are buffered and applied together when the
    callable returns. Nothing is written if the callable raises.
    """

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Read a document inside the transaction.

        Args:
            path: Document path.

        Returns:
            Document fields, or None when the document does not exist.
        """

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Buffer a create-or-replace (or merge) of a document."""

    @abstractmethod
    def update(self, path: str, data: dict[str, Any]) -> None:
        """Buffer a partial update; the commit fails if the document is absent."""


class DocumentStore(ABC):
    """Abstract interface for document persistence with atomic transactions.

    All methods are async. Implementations raise StateStoreError (or one of
    its subclasses) for operation failures.

    Key Features:
        - Slash-path addressing with collection queries
        - Multi-document all-or-nothing transactions expressed as closures
        - Transient transaction conflicts retried transparently
    """

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Retrieve a document.

        Args:
            path: Document path.

        Returns:
            Document fields, or None when the document does not exist.

        Raises:
            StateStoreError: If retrieval fails.
        """

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Create or replace a document.

        Args:
            path: Document path.
            data: Document fields. ``Increment`` values add to existing fields.
            merge: Update the given top-level fields only, creating the
                document when absent.

        Raises:
            StateStoreError: If the write fails.
        """

    @abstractmethod
    async def update(self, path: str, data: dict[str, Any]) -> None:
        """Update fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            StateStoreError: If the write fails.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document. Deleting an absent document is a no-op."""

    @abstractmethod
    async def query(self, query: DocumentQuery) -> list[DocumentSnapshot]:
        """Query the direct children of a collection.

        Args:
            query: Filters, ordering and pagination.

        Returns:
            Matching documents in the requested order.

        Raises:
            StateStoreError: If the query fails.
        """

    @abstractmethod
    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run ``fn`` atomically.

        ``fn`` may be invoked more than once when a concurrent write conflicts
        with what it read, so it must not have side effects outside the
        transaction.

        Args:
            fn: Async callable receiving the transaction context.

        Returns:
            Whatever ``fn`` returned on the committed attempt.

        Raises:
            TransactionConflictError: If conflicts persist past the retry limit.
            StateStoreError: If the commit fails.
            Exception: Anything raised by ``fn`` propagates unchanged and no
                write is applied.
        """

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""


class StateStoreError(Exception):
    """Raised when DocumentStore operations fail.

    Example:
        ```python
        try:
            await store.update(path, {"status": "occupied"})
        except StateStoreError as e:
            logger.error("store_write_failed", error=str(e))
        ```
    """

    pass


class DocumentNotFoundError(StateStoreError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class TransactionConflictError(StateStoreError):
    """Raised when a transaction keeps conflicting past its retry limit."""

    pass
