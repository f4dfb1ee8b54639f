"""Audit sink writing entries into the document store."""

import structlog

from valetflow.domain.document_paths import audit_path
from valetflow.domain.interfaces.audit_sink import AuditSink
from valetflow.domain.interfaces.document_store import DocumentStore, StateStoreError
from valetflow.domain.models.audit_entry import AuditEntry
from valetflow.infrastructure.observability.logger import sanitize_for_logging

logger = structlog.get_logger(__name__)


class StoreAuditSink(AuditSink):
    """Appends entries under ``tenants/{tenant}/audit/{entry_id}``.

    Failures are logged and dropped.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def append(self, tenant_id: str, entry: AuditEntry) -> None:
        try:
            await self._store.set(
                audit_path(tenant_id, entry.id),
                sanitize_for_logging(entry.to_document(exclude={"id"})),
            )
        except StateStoreError as e:
            logger.warning(
                "audit_append_failed",
                tenant_id=tenant_id,
                action=entry.action,
                resource_id=entry.resource_id,
                error=str(e),
            )
