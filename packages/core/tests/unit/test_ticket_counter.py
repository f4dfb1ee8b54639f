"""Tests for ShardedTicketCounter."""

import asyncio
import random

import pytest

from valetflow.domain.components.ticket_counter import ShardedTicketCounter
from valetflow.domain.document_paths import counter_shard_path
from valetflow.infrastructure.state_store.memory_store import InMemoryDocumentStore


class TestShardedTicketCounter:
    """Tests for ticket allocation."""

    @pytest.mark.asyncio
    async def test_first_allocation_on_shard_is_base_plus_shard(self) -> None:
        """Test that an empty shard starts at base + shard id."""
        store = InMemoryDocumentStore()
        counter = ShardedTicketCounter(shard_count=1, base=1000)

        first = await store.run_transaction(lambda tx: counter.allocate(tx, "acme"))
        second = await store.run_transaction(lambda tx: counter.allocate(tx, "acme"))

        assert first == 1000
        assert second == 1001
        assert await store.get(counter_shard_path("acme", 0)) == {"value": 1001, "shard_id": 0}

    @pytest.mark.asyncio
    async def test_numbers_stay_in_shard_residue_class(self) -> None:
        """Test that each shard only issues numbers congruent to its id."""
        store = InMemoryDocumentStore()
        counter = ShardedTicketCounter(shard_count=5, base=1000, rng=random.Random(3))

        numbers = [
            await store.run_transaction(lambda tx: counter.allocate(tx, "acme"))
            for _ in range(50)
        ]

        for shard_id in range(5):
            shard = await store.get(counter_shard_path("acme", shard_id))
            if shard is not None:
                assert (shard["value"] - 1000) % 5 == shard_id
        assert len(set(numbers)) == 50

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique(self) -> None:
        """Test that racing allocations never repeat a number."""
        store = InMemoryDocumentStore(max_transaction_attempts=50)
        counter = ShardedTicketCounter(shard_count=3, base=1000, rng=random.Random(5))

        numbers = await asyncio.gather(
            *(store.run_transaction(lambda tx: counter.allocate(tx, "acme")) for _ in range(30))
        )

        assert len(set(numbers)) == 30
        assert min(numbers) >= 1000

    @pytest.mark.asyncio
    async def test_tenants_are_independent(self) -> None:
        """Test that each tenant has its own shards."""
        store = InMemoryDocumentStore()
        counter = ShardedTicketCounter(shard_count=1, base=500)

        a = await store.run_transaction(lambda tx: counter.allocate(tx, "acme"))
        b = await store.run_transaction(lambda tx: counter.allocate(tx, "globex"))

        assert a == b == 500

    def test_rejects_zero_shards(self) -> None:
        with pytest.raises(ValueError):
            ShardedTicketCounter(shard_count=0)

    def test_pick_shard_in_range(self) -> None:
        counter = ShardedTicketCounter(shard_count=4, rng=random.Random(1))
        assert {counter.pick_shard() for _ in range(200)} == {0, 1, 2, 3}
