"""IdempotencyRecord data model."""

from datetime import datetime, timedelta
from typing import Any

from pydantic import ConfigDict, Field

from valetflow.domain.models.document import DocumentModel


class IdempotencyRecord(DocumentModel):
    """Result previously returned for a caller-supplied idempotency key.

    Written once after a successful create and never updated; honored only
    while younger than the cache TTL.
    """

    result: dict[str, Any] = Field(
        ...,
        description="Serialized response returned for the key",
    )
    created_at: datetime = Field(
        ...,
        description="When the result was recorded",
    )
    expires_at: datetime = Field(
        ...,
        description="Hint for out-of-band garbage collection",
    )

    model_config = ConfigDict(frozen=True)

    def is_live(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at < ttl
