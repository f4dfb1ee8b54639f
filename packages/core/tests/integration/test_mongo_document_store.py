"""Integration tests for MongoDocumentStore.

Transactions need a replica set; the whole module is skipped when MongoDB
is unreachable or runs standalone.
"""

import os
from contextlib import suppress

import pytest
from motor.motor_asyncio import AsyncIOMotorClient

from valetflow.domain.interfaces.document_store import (
    DocumentNotFoundError,
    DocumentQuery,
    Increment,
)
from valetflow.infrastructure.state_store.mongo_store import MongoDocumentStore

TEST_DATABASE = "test_valetflow_documents"


@pytest.fixture
async def mongodb_url():
    """Return a reachable MongoDB URL that supports transactions."""
    url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")

    try:
        client = AsyncIOMotorClient(url, serverSelectionTimeoutMS=2000)
        hello = await client.admin.command("hello")
    except Exception:
        pytest.skip("MongoDB is not available. Start MongoDB or set MONGODB_URL")
    client.close()

    if "setName" not in hello:
        pytest.skip("MongoDB transactions need a replica set")

    yield url

    client = AsyncIOMotorClient(url)
    with suppress(Exception):
        await client.drop_database(TEST_DATABASE)
    client.close()


@pytest.fixture
async def mongo_store(mongodb_url) -> MongoDocumentStore:
    store = MongoDocumentStore(
        connection_url=mongodb_url,
        database_name=TEST_DATABASE,
        server_selection_timeout_ms=3000,
    )
    await store.initialize()
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_set_get_update_delete(mongo_store: MongoDocumentStore):
    path = "tenants/acme/locations/lot/spots/A1"

    await mongo_store.set(path, {"status": "available", "locked_by": None})
    assert await mongo_store.get(path) == {"status": "available", "locked_by": None}

    await mongo_store.update(path, {"locked_by": "op-1"})
    assert await mongo_store.get(path) == {"status": "available", "locked_by": "op-1"}

    await mongo_store.delete(path)
    assert await mongo_store.get(path) is None


@pytest.mark.asyncio
async def test_update_missing_document(mongo_store: MongoDocumentStore):
    with pytest.raises(DocumentNotFoundError):
        await mongo_store.update("tenants/acme/bookings/missing", {"status": "New"})


@pytest.mark.asyncio
async def test_merge_increment(mongo_store: MongoDocumentStore):
    path = "tenants/acme/stats/2026-03-01"

    for _ in range(2):
        await mongo_store.set(
            path, {"completed_count": Increment(1), "total_revenue": Increment(7.5)}, merge=True
        )

    assert await mongo_store.get(path) == {"completed_count": 2, "total_revenue": 15.0}


@pytest.mark.asyncio
async def test_transaction_commits_all_writes(mongo_store: MongoDocumentStore):
    await mongo_store.set("tenants/acme/locations/lot/spots/A1", {"status": "available"})

    async def assign(tx):
        spot = await tx.get("tenants/acme/locations/lot/spots/A1")
        tx.update("tenants/acme/locations/lot/spots/A1", {"status": "occupied"})
        tx.set("tenants/acme/bookings/b1", {"spot": "A1"})
        return spot["status"]

    assert await mongo_store.run_transaction(assign) == "available"
    assert await mongo_store.get("tenants/acme/locations/lot/spots/A1") == {"status": "occupied"}
    assert await mongo_store.get("tenants/acme/bookings/b1") == {"spot": "A1"}


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(mongo_store: MongoDocumentStore):
    async def fail(tx):
        tx.set("tenants/acme/bookings/b2", {"status": "New"})
        raise ValueError("rejected")

    with pytest.raises(ValueError, match="rejected"):
        await mongo_store.run_transaction(fail)

    assert await mongo_store.get("tenants/acme/bookings/b2") is None


@pytest.mark.asyncio
async def test_query_order_and_cursor(mongo_store: MongoDocumentStore):
    for doc_id, rank in [("a", 3), ("b", 1), ("c", 2)]:
        await mongo_store.set(f"tenants/acme/bookings/{doc_id}", {"rank": rank, "status": "New"})
    await mongo_store.set("tenants/acme/bookings/a/history/h1", {"rank": 0})

    snapshots = await mongo_store.query(
        DocumentQuery(collection="tenants/acme/bookings", order_by="rank", descending=True)
    )
    assert [s.id for s in snapshots] == ["a", "c", "b"]

    snapshots = await mongo_store.query(
        DocumentQuery(
            collection="tenants/acme/bookings", order_by="rank", start_after="b", limit=1
        )
    )
    assert [s.id for s in snapshots] == ["c"]


@pytest.mark.asyncio
async def test_check_connection(mongo_store: MongoDocumentStore):
    assert await mongo_store.check_connection() is True
