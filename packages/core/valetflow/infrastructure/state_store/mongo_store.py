"""MongoDB document store implementation.

All documents share one collection. The document path is the ``_id`` and
the collection path is stored in ``_parent`` so collection queries hit a
single index.

Transactions use ``ClientSession.with_transaction``, which retries transient
write conflicts transparently. Multi-document transactions need a replica
set (a single-node replica set is enough for development).

Example:
    ```python
    import os
    from valetflow.infrastructure.state_store.mongo_store import MongoDocumentStore

    os.environ["MONGODB_URL"] = "mongodb://localhost:27017/?replicaSet=rs0"
    store = MongoDocumentStore()
    await store.initialize()
    await store.set("tenants/acme/locations/lot/spots/A1", {"status": "available"})
    ```
"""

import os
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from valetflow.domain.interfaces.document_store import (
    DocumentNotFoundError,
    DocumentQuery,
    DocumentSnapshot,
    DocumentStore,
    Increment,
    StateStoreError,
    Transaction,
    parent_path,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)

_META_FIELDS = ("_id", "_parent")


def _strip_meta(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    return {key: value for key, value in raw.items() if key not in _META_FIELDS}


def _split_increments(data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    plain: dict[str, Any] = {}
    increments: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Increment):
            increments[key] = value.amount
        else:
            plain[key] = value
    return plain, increments


async def _write(
    collection: AsyncIOMotorCollection,
    path: str,
    data: dict[str, Any],
    merge: bool,
    require_existing: bool,
    session: AsyncIOMotorClientSession | None = None,
) -> None:
    plain, increments = _split_increments(data)
    if not merge and not require_existing:
        document = {**plain, **increments, "_id": path, "_parent": parent_path(path)}
        await collection.replace_one({"_id": path}, document, upsert=True, session=session)
        return

    update: dict[str, Any] = {"$set": {**plain, "_parent": parent_path(path)}}
    if increments:
        update["$inc"] = increments
    result = await collection.update_one(
        {"_id": path}, update, upsert=not require_existing, session=session
    )
    if require_existing and result.matched_count == 0:
        raise DocumentNotFoundError(path)


class _MongoTransaction(Transaction):
    """Transaction context bound to one ``with_transaction`` attempt."""

    def __init__(
        self, collection: AsyncIOMotorCollection, session: AsyncIOMotorClientSession
    ) -> None:
        self._collection = collection
        self._session = session
        self._writes: list[tuple[str, dict[str, Any], bool, bool]] = []

    async def get(self, path: str) -> dict[str, Any] | None:
        raw = await self._collection.find_one({"_id": path}, session=self._session)
        return _strip_meta(raw)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._writes.append((path, dict(data), merge, False))

    def update(self, path: str, data: dict[str, Any]) -> None:
        self._writes.append((path, dict(data), True, True))

    async def flush(self) -> None:
        for path, data, merge, require_existing in self._writes:
            await _write(self._collection, path, data, merge, require_existing, self._session)


class MongoDocumentStore(DocumentStore):
    """MongoDB implementation of DocumentStore using motor.

    Error Handling:
        - Connection and driver errors raise StateStoreError
        - DocumentNotFoundError passes through unchanged
        - Exceptions raised by a transaction callable abort the transaction
          and propagate unchanged

    Attributes:
        _client: AsyncIOMotorClient instance
        _database_name: Name of the MongoDB database
        _collection_name: Name of the collection holding every document
        _initialized: Whether connectivity was verified and indexes created
    """

    def __init__(
        self,
        connection_url: str | None = None,
        database_name: str = "valetflow",
        collection_name: str = "documents",
        max_pool_size: int = 100,
        min_pool_size: int = 0,
        connect_timeout_ms: int = 20000,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        """Initialize MongoDocumentStore with connection configuration.

        Args:
            connection_url: MongoDB connection string. If None, reads from
                the MONGODB_URL environment variable.
            database_name: Name of the MongoDB database to use.
            collection_name: Name of the collection holding all documents.
            max_pool_size: Maximum number of pooled connections.
            min_pool_size: Minimum number of pooled connections.
            connect_timeout_ms: Connection timeout in milliseconds.
            server_selection_timeout_ms: Server selection timeout in milliseconds.

        Raises:
            StateStoreError: If the connection URL is missing or invalid.
        """
        if connection_url is None:
            connection_url = os.getenv("MONGODB_URL")
            if connection_url is None:
                raise StateStoreError(
                    "MongoDB connection URL not provided. Set MONGODB_URL environment "
                    "variable or pass connection_url parameter."
                )

        self._database_name = database_name
        self._collection_name = collection_name
        self._initialized = False

        try:
            self._client: AsyncIOMotorClient | None = AsyncIOMotorClient(
                connection_url,
                tz_aware=True,
                maxPoolSize=max_pool_size,
                minPoolSize=min_pool_size,
                connectTimeoutMS=connect_timeout_ms,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
            )
            logger.info(
                "MongoDB client created",
                database=database_name,
                collection=collection_name,
            )
        except (ConfigurationError, ValueError) as e:
            error_msg = f"Invalid MongoDB connection URL: {e}"
            logger.error("mongodb_connection_error", error=error_msg)
            raise StateStoreError(error_msg) from e

    @property
    def _collection(self) -> AsyncIOMotorCollection:
        if self._client is None:
            raise StateStoreError("MongoDB client not initialized")
        return self._client[self._database_name][self._collection_name]

    async def initialize(self) -> None:
        """Verify connectivity and create the ``_parent`` index.

        Raises:
            StateStoreError: If the server is unreachable or rejects the
                credentials.
        """
        if self._initialized:
            return

        if self._client is None:
            raise StateStoreError("MongoDB client not initialized")

        try:
            await self._client.admin.command("ping")
            await self._collection.create_index([("_parent", ASCENDING)])
            self._initialized = True
            logger.info("MongoDB connection established", database=self._database_name)
        except (ConnectionFailure, ServerSelectionTimeoutError, NetworkTimeout) as e:
            error_msg = f"Failed to connect to MongoDB: {e}"
            logger.error("mongodb_connection_failure", error=error_msg)
            raise StateStoreError(error_msg) from e
        except OperationFailure as e:
            if e.code == 18 or "authentication" in str(e).lower():
                error_msg = f"MongoDB authentication failed: {e}"
                logger.error("mongodb_authentication_failure", error=error_msg)
                raise StateStoreError(error_msg) from e
            raise StateStoreError(f"MongoDB initialization failed: {e}") from e

    async def check_connection(self) -> bool:
        """Return True when the server answers a ping."""
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("mongodb_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._initialized = False
            logger.info("MongoDB connection closed")

    async def get(self, path: str) -> dict[str, Any] | None:
        if not self._initialized:
            await self.initialize()
        try:
            return _strip_meta(await self._collection.find_one({"_id": path}))
        except PyMongoError as e:
            logger.error("mongodb_get_error", path=path, error=str(e))
            raise StateStoreError(f"Failed to read {path}: {e}") from e

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        if not self._initialized:
            await self.initialize()
        try:
            await _write(self._collection, path, data, merge, False)
        except PyMongoError as e:
            logger.error("mongodb_set_error", path=path, error=str(e))
            raise StateStoreError(f"Failed to write {path}: {e}") from e

    async def update(self, path: str, data: dict[str, Any]) -> None:
        if not self._initialized:
            await self.initialize()
        try:
            await _write(self._collection, path, data, True, True)
        except PyMongoError as e:
            logger.error("mongodb_update_error", path=path, error=str(e))
            raise StateStoreError(f"Failed to update {path}: {e}") from e

    async def delete(self, path: str) -> None:
        if not self._initialized:
            await self.initialize()
        try:
            await self._collection.delete_one({"_id": path})
        except PyMongoError as e:
            logger.error("mongodb_delete_error", path=path, error=str(e))
            raise StateStoreError(f"Failed to delete {path}: {e}") from e

    async def query(self, query: DocumentQuery) -> list[DocumentSnapshot]:
        if not self._initialized:
            await self.initialize()

        direction = DESCENDING if query.descending else ASCENDING
        comparison = "$lt" if query.descending else "$gt"
        mongo_filter: dict[str, Any] = {"_parent": query.collection, **query.filters}

        try:
            if query.start_after:
                cursor_path = f"{query.collection}/{query.start_after}"
                cursor_doc = await self._collection.find_one({"_id": cursor_path})
                if cursor_doc is not None:
                    if query.order_by:
                        value = cursor_doc.get(query.order_by)
                        mongo_filter["$or"] = [
                            {query.order_by: {comparison: value}},
                            {query.order_by: value, "_id": {comparison: cursor_path}},
                        ]
                    else:
                        mongo_filter["_id"] = {comparison: cursor_path}

            sort = [("_id", direction)]
            if query.order_by:
                sort.insert(0, (query.order_by, direction))

            cursor = self._collection.find(mongo_filter).sort(sort)
            if query.limit is not None:
                cursor = cursor.limit(query.limit)

            return [
                DocumentSnapshot(path=raw["_id"], data=_strip_meta(raw) or {})
                async for raw in cursor
            ]
        except PyMongoError as e:
            logger.error("mongodb_query_error", collection=query.collection, error=str(e))
            raise StateStoreError(f"Failed to query {query.collection}: {e}") from e

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        if not self._initialized:
            await self.initialize()

        collection = self._collection

        async def callback(session: AsyncIOMotorClientSession) -> T:
            tx = _MongoTransaction(collection, session)
            result = await fn(tx)
            await tx.flush()
            return result

        try:
            async with await self._client.start_session() as session:
                return await session.with_transaction(callback)
        except PyMongoError as e:
            logger.error("mongodb_transaction_error", error=str(e))
            raise StateStoreError(f"Transaction failed: {e}") from e
