"""AuditEntry data model for the audit trail."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field

from valetflow.domain.clock import utc_now
from valetflow.domain.models.document import DocumentModel


class AuditEntry(DocumentModel):
    """One mutation recorded for compliance.

    Audit entries are write-only from the core's point of view.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Entry identifier",
    )
    action: str = Field(
        ...,
        description="Mutation name (e.g., 'booking.create', 'spot.assign')",
        min_length=1,
    )
    actor: str = Field(
        ...,
        description="Caller identity that performed the mutation",
        min_length=1,
    )
    resource_type: str = Field(
        ...,
        description="Kind of resource touched ('booking' or 'spot')",
        min_length=1,
    )
    resource_id: str = Field(
        ...,
        description="Identifier of the resource touched",
        min_length=1,
    )
    correlation_id: str = Field(
        default="",
        description="Request correlation id",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context about the mutation",
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the mutation happened",
    )

    model_config = ConfigDict(
        frozen=True,  # Immutable audit trail
    )
