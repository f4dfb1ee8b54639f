"""In-memory document store with optimistic transactions.

Every document carries a version number. A transaction remembers the
version of each path it read (absent documents included) and, at commit,
re-checks those versions under the store's write lock. If any of them moved,
the writes are discarded and the transaction callable runs again.

Example:
    ```python
    from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore

    store = InMemoryDocumentStore()
    await store.set("tenants/acme/counters/tickets_shard_0", {"count": 0})

    async def bump(tx):
        shard = await tx.get("tenants/acme/counters/tickets_shard_0")
        tx.set("tenants/acme/counters/tickets_shard_0", {"count": shard["count"] + 1})
        return shard["count"] + 1

    value = await store.run_transaction(bump)
    ```
"""

import asyncio
import copy
import itertools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from valetflow.domain.interfaces.document_store import (
    DocumentNotFoundError,
    DocumentQuery,
    DocumentSnapshot,
    DocumentStore,
    Increment,
    StateStoreError,
    Transaction,
    TransactionConflictError,
    document_id,
    parent_path,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def apply_write(
    path: str,
    current: dict[str, Any] | None,
    data: dict[str, Any],
    merge: bool,
    require_existing: bool,
) -> dict[str, Any]:
    """Compute the document produced by one write.

    Args:
        path: Document path, used in error messages.
        current: Current document, or None when absent.
        data: Fields written. ``Increment`` values add to the current value.
        merge: Keep fields of ``current`` that ``data`` does not name.
        require_existing: Fail when ``current`` is None (``update`` semantics).

    Raises:
        DocumentNotFoundError: If ``require_existing`` and the document is absent.
    """
    if current is None and require_existing:
        raise DocumentNotFoundError(path)
    result = dict(current) if current is not None and (merge or require_existing) else {}
    for key, value in data.items():
        if isinstance(value, Increment):
            existing = result.get(key)
            base = existing if isinstance(existing, int | float) else 0
            result[key] = base + value.amount
        else:
            result[key] = copy.deepcopy(value)
    return result


def _sort_key(doc: dict[str, Any], field: str | None) -> tuple:
    if field is None:
        return ()
    value = doc.get(field)
    return (0,) if value is None else (1, value)


class _InMemoryTransaction(Transaction):
    """Transaction context bound to one attempt."""

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self.reads: dict[str, int] = {}
        self.writes: list[tuple[str, dict[str, Any], bool, bool]] = []

    async def get(self, path: str) -> dict[str, Any] | None:
        # Yield so concurrent transactions interleave between reads and commit.
        await asyncio.sleep(0)
        data, version = self._store._read(path)
        self.reads.setdefault(path, version)
        return data

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append((path, copy.deepcopy(data), merge, False))

    def update(self, path: str, data: dict[str, Any]) -> None:
        self.writes.append((path, copy.deepcopy(data), True, True))


class InMemoryDocumentStore(DocumentStore):
    """In-memory implementation of DocumentStore.

    Reads deep-copy documents out of the store, so callers can never mutate
    stored state. All writes, transactional or not, go through one
    asyncio.Lock and bump the version of the paths they touch.

    Attributes:
        _documents: Document fields keyed by path.
        _versions: Last write version per path. Survives deletion so that a
            transaction which read an absent document still detects a
            concurrent create.
    """

    def __init__(self, max_transaction_attempts: int = 5) -> None:
        """Initialize InMemoryDocumentStore.

        Args:
            max_transaction_attempts: Attempts before a conflicting
                transaction fails with TransactionConflictError.
        """
        if max_transaction_attempts < 1:
            raise ValueError("max_transaction_attempts must be at least 1")
        self._documents: dict[str, dict[str, Any]] = {}
        self._versions: dict[str, int] = {}
        self._sequence = itertools.count(1)
        self._max_transaction_attempts = max_transaction_attempts
        self._write_lock = asyncio.Lock()

    def _read(self, path: str) -> tuple[dict[str, Any] | None, int]:
        doc = self._documents.get(path)
        return (copy.deepcopy(doc) if doc is not None else None), self._versions.get(path, 0)

    def _store(self, path: str, doc: dict[str, Any] | None) -> None:
        if doc is None:
            self._documents.pop(path, None)
        else:
            self._documents[path] = doc
        self._versions[path] = next(self._sequence)

    async def get(self, path: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        data, _ = self._read(path)
        return data

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        async with self._write_lock:
            self._store(path, apply_write(path, self._documents.get(path), data, merge, False))

    async def update(self, path: str, data: dict[str, Any]) -> None:
        async with self._write_lock:
            self._store(path, apply_write(path, self._documents.get(path), data, True, True))

    async def delete(self, path: str) -> None:
        async with self._write_lock:
            if path in self._documents:
                self._store(path, None)

    async def query(self, query: DocumentQuery) -> list[DocumentSnapshot]:
        await asyncio.sleep(0)
        try:
            children = {
                path: doc
                for path, doc in self._documents.items()
                if parent_path(path) == query.collection
            }
            matches = [
                (path, doc)
                for path, doc in children.items()
                if all(doc.get(field) == value for field, value in query.filters.items())
            ]

            def key(item: tuple[str, dict[str, Any]]) -> tuple:
                return (_sort_key(item[1], query.order_by), document_id(item[0]))

            matches.sort(key=key, reverse=query.descending)

            if query.start_after:
                cursor_path = f"{query.collection}/{query.start_after}"
                cursor_doc = children.get(cursor_path)
                if cursor_doc is not None:
                    cursor = key((cursor_path, cursor_doc))
                    if query.descending:
                        matches = [item for item in matches if key(item) < cursor]
                    else:
                        matches = [item for item in matches if key(item) > cursor]

            if query.limit is not None:
                matches = matches[: query.limit]
        except TypeError as e:
            raise StateStoreError(
                f"Cannot order {query.collection} by {query.order_by}: {e}"
            ) from e

        return [DocumentSnapshot(path=path, data=copy.deepcopy(doc)) for path, doc in matches]

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        for attempt in range(1, self._max_transaction_attempts + 1):
            tx = _InMemoryTransaction(self)
            result = await fn(tx)
            if await self._commit(tx):
                return result
            logger.debug("transaction_conflict", attempt=attempt, paths=sorted(tx.reads))
        raise TransactionConflictError(
            f"Transaction aborted after {self._max_transaction_attempts} conflicting attempts"
        )

    async def _commit(self, tx: _InMemoryTransaction) -> bool:
        """Validate reads and apply buffered writes; False on conflict."""
        async with self._write_lock:
            for path, version in tx.reads.items():
                if self._versions.get(path, 0) != version:
                    return False

            staged: dict[str, dict[str, Any]] = {}
            for path, data, merge, require_existing in tx.writes:
                current = staged[path] if path in staged else self._documents.get(path)
                staged[path] = apply_write(path, current, data, merge, require_existing)

            for path, doc in staged.items():
                self._store(path, doc)
        return True
