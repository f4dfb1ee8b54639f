"""RateLimitCounter data model."""

import math
from datetime import datetime, timedelta

from pydantic import ConfigDict, Field

from valetflow.domain.models.document import DocumentModel


class RateLimitCounter(DocumentModel):
    """Fixed-window request counter for one caller.

    The window restarts with ``count=1`` once ``now - window_start`` reaches
    the window length; otherwise every request increments ``count``.
    """

    count: int = Field(default=0, ge=0)
    window_start: datetime

    model_config = ConfigDict(frozen=True)

    def is_expired(self, now: datetime, window: timedelta) -> bool:
        return now - self.window_start >= window

    def hit(self, now: datetime, window: timedelta) -> "RateLimitCounter":
        """Return the counter after recording one request at ``now``."""
        if self.is_expired(now, window):
            return RateLimitCounter(count=1, window_start=now)
        return RateLimitCounter(count=self.count + 1, window_start=self.window_start)

    def retry_after(self, now: datetime, window: timedelta) -> int:
        """Whole seconds until the window closes (at least 1)."""
        remaining = (self.window_start + window - now).total_seconds()
        return max(1, math.ceil(remaining))
