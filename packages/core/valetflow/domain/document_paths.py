"""Tenant-scoped document paths.

Every entity lives under ``tenants/{tenant_id}`` so no query or transaction
can reach another tenant's data.
"""


def tenant_root(tenant_id: str) -> str:
    return f"tenants/{tenant_id}"


def bookings_collection(tenant_id: str) -> str:
    return f"{tenant_root(tenant_id)}/bookings"


def booking_path(tenant_id: str, booking_id: str) -> str:
    return f"{bookings_collection(tenant_id)}/{booking_id}"


def spots_collection(tenant_id: str, location_id: str) -> str:
    return f"{tenant_root(tenant_id)}/locations/{location_id}/spots"


def spot_path(tenant_id: str, location_id: str, spot_id: str) -> str:
    return f"{spots_collection(tenant_id, location_id)}/{spot_id}"


def counter_shard_path(tenant_id: str, shard_id: int) -> str:
    return f"{tenant_root(tenant_id)}/counters/tickets_shard_{shard_id}"


def daily_stats_path(tenant_id: str, date: str) -> str:
    return f"{tenant_root(tenant_id)}/stats/{date}"


def idempotency_path(tenant_id: str, key: str) -> str:
    return f"{tenant_root(tenant_id)}/idempotency/{key}"


def audit_path(tenant_id: str, entry_id: str) -> str:
    return f"{tenant_root(tenant_id)}/audit/{entry_id}"


def rate_limit_path(caller_id: str) -> str:
    # Callers are global identities, not tenant-scoped.
    return f"rate_limits/{caller_id}"
