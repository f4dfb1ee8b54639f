"""Document store implementations."""

from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore
from valetflow.infrastructure.state_store.mongo_store import MongoDocumentStore

__all__ = ["InMemoryDocumentStore", "MongoDocumentStore"]
