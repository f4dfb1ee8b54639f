"""Audit sinks."""

from valetflow.infrastructure.audit.store_audit_sink import StoreAuditSink

__all__ = ["StoreAuditSink"]
