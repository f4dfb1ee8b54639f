"""Notification service that only records what would be sent."""

from valetflow.domain.interfaces.notifier import BookingNotification, NotificationService
from valetflow.domain.interfaces.observability_manager import ObservabilityManager


class LoggingNotificationService(NotificationService):
    """Emits each notification as an observability event.

    Stands in for SMS or email delivery, which lives outside this package.
    Contact details are redacted by the observability layer.
    """

    def __init__(self, observability_manager: ObservabilityManager) -> None:
        self._observability = observability_manager

    async def notify(self, notification: BookingNotification) -> None:
        await self._observability.emit_event(
            event_type=f"notification_{notification.event}",
            payload=notification.model_dump(),
            metadata={"tenant_id": notification.tenant_id},
        )
