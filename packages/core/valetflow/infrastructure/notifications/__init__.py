"""Notification services."""

from valetflow.infrastructure.notifications.logging_notifier import LoggingNotificationService

__all__ = ["LoggingNotificationService"]
