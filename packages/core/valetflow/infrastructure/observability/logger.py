"""Default observability manager implementation."""

import logging
from typing import Any

import structlog

from valetflow.domain.clock import utc_now
from valetflow.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)

REDACTED = "[REDACTED]"

# Customer contact details never reach log output.
_SENSITIVE_FIELDS = frozenset({"customer_phone", "customer_email", "phone", "email"})


def sanitize_for_logging(data: Any) -> Any:
    """Redact customer contact details before logging.

    Replaces the values of phone and email fields in dictionaries and nested
    structures.

    Args:
        data: Data structure to sanitize (dict, list, tuple or primitive).

    Returns:
        Sanitized copy of ``data``.
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if key in _SENSITIVE_FIELDS and value:
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_for_logging(value)
        return sanitized
    elif isinstance(data, list | tuple):
        return [sanitize_for_logging(item) for item in data]
    return data


class DefaultObservabilityManager(ObservabilityManager):
    """Default implementation of ObservabilityManager using structlog.

    JSON output for machine readability in production, console output in
    development.
    """

    def __init__(self, log_level: str = "INFO", json_format: bool = True) -> None:
        """Initialize DefaultObservabilityManager.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            json_format: If True, render JSON lines. If False, use the
                human-readable console renderer.
        """
        self._log_level = log_level
        self._json_format = json_format

        processors: list[Any] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]

        if json_format:
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer())

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            level=getattr(logging, log_level.upper(), logging.INFO),
            format="%(message)s"
            if json_format
            else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        self._logger = structlog.get_logger("valetflow")

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event as a structured log line.

        Raises:
            ObservabilityError: If event emission fails.
        """
        try:
            event_data = {**sanitize_for_logging(payload)}
            if metadata:
                sanitized_metadata = sanitize_for_logging(metadata)
                if "timestamp" not in sanitized_metadata:
                    sanitized_metadata["timestamp"] = utc_now().isoformat()
                event_data["metadata"] = sanitized_metadata

            self._logger.info(
                "Event emitted",
                event_type=event_type,
                **event_data,
            )
        except Exception as e:
            raise ObservabilityError(f"Failed to emit event: {e}") from e

    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured context.

        Raises:
            ObservabilityError: If logging fails.
        """
        try:
            sanitized_context = sanitize_for_logging(context) if context else None

            log_method = getattr(self._logger, level.lower(), self._logger.info)
            if sanitized_context:
                log_method(message, **sanitized_context)
            else:
                log_method(message)
        except Exception as e:
            raise ObservabilityError(f"Failed to log message: {e}") from e
