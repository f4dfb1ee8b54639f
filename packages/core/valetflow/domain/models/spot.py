"""Spot data model and SpotStatus enum."""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import ConfigDict, Field

from valetflow.domain.models.document import DocumentModel


class SpotStatus(str, Enum):
    """Occupancy of a physical spot."""

    Available = "available"
    """No booking holds the spot."""

    Occupied = "occupied"
    """A booking holds the spot."""


class Spot(DocumentModel):
    """One physical parking location.

    The soft lock (``locked_by``/``locked_at``) expires lazily: a lock older
    than the configured timeout is treated as absent whatever the stored
    fields say.
    """

    id: str = Field(..., min_length=1)
    location_id: str = Field(..., min_length=1)
    name: str = ""
    status: SpotStatus = SpotStatus.Available
    booking_id: str | None = None
    locked_by: str | None = None
    locked_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    def lock_age(self, now: datetime) -> timedelta | None:
        """Age of the stored lock, or None when no lock is recorded."""
        if not self.locked_by:
            return None
        if self.locked_at is None:
            # A lock without a timestamp can never be live.
            return timedelta.max
        return now - self.locked_at

    def live_lock_owner(self, now: datetime, timeout: timedelta) -> str | None:
        """Owner of a lock younger than ``timeout``, else None."""
        age = self.lock_age(now)
        if age is None or age >= timeout:
            return None
        return self.locked_by

    def is_locked_against(self, actor: str, now: datetime, timeout: timedelta) -> bool:
        """True when someone other than ``actor`` holds a live lock."""
        owner = self.live_lock_owner(now, timeout)
        return owner is not None and owner != actor

    def to_document(self, exclude: set[str] | None = None) -> dict:
        return super().to_document(exclude={"id", *(exclude or set())})
