"""AuditSink interface for the append-only mutation trail."""

from abc import ABC, abstractmethod

from valetflow.domain.models.audit_entry import AuditEntry


class AuditSink(ABC):
    """Write-only destination for audit entries.

    The core never reads entries back. Implementations must not raise:
    a failed append is logged and dropped so it cannot turn a committed
    mutation into a caller-visible failure.
    """

    @abstractmethod
    async def append(self, tenant_id: str, entry: AuditEntry) -> None:
        """Append one entry to the tenant's audit trail."""


class NullAuditSink(AuditSink):
    """Audit sink that discards everything."""

    async def append(self, tenant_id: str, entry: AuditEntry) -> None:
        return None
