"""Sharded per-tenant ticket number allocation."""

import random

from valetflow.domain.document_paths import counter_shard_path
from valetflow.domain.interfaces.document_store import Transaction


class ShardedTicketCounter:
    """Allocates ticket numbers from N independent counter shards.

    Shard ``s`` hands out ``base + s``, ``base + s + N``, ``base + s + 2N``...
    so every shard owns one residue class modulo N and no two shards can
    produce the same number. Spreading allocations over N documents keeps a
    single counter document from becoming a write hotspot.

    Changing ``shard_count`` or ``base`` for a tenant that already holds
    tickets breaks the residue-class guarantee.
    """

    def __init__(
        self,
        shard_count: int = 5,
        base: int = 1000,
        rng: random.Random | None = None,
    ) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self._shard_count = shard_count
        self._base = base
        self._rng = rng or random.Random()

    @property
    def shard_count(self) -> int:
        return self._shard_count

    def pick_shard(self) -> int:
        """Pick a shard uniformly at random."""
        return self._rng.randrange(self._shard_count)

    async def allocate(self, tx: Transaction, tenant_id: str) -> int:
        """Reserve the next ticket number inside ``tx``.

        Args:
            tx: Transaction the booking is created in.
            tenant_id: Tenant owning the counter.

        Returns:
            A ticket number unique within the tenant.
        """
        shard_id = self.pick_shard()
        path = counter_shard_path(tenant_id, shard_id)
        shard = await tx.get(path)
        if shard is None or "value" not in shard:
            ticket_number = self._base + shard_id
        else:
            ticket_number = int(shard["value"]) + self._shard_count
        tx.set(path, {"value": ticket_number, "shard_id": shard_id})
        return ticket_number
