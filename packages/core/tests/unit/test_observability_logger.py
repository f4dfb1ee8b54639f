"""Tests for DefaultObservabilityManager and log sanitization."""

from unittest.mock import MagicMock

import pytest

from valetflow.domain.interfaces.observability_manager import ObservabilityError
from valetflow.infrastructure.observability.logger import (
    REDACTED,
    DefaultObservabilityManager,
    sanitize_for_logging,
)


class TestSanitizeForLogging:
    """Tests for sanitize_for_logging()."""

    def test_redacts_contact_details(self) -> None:
        data = {
            "customer_name": "Ada",
            "customer_phone": "+1 555 0100",
            "customer_email": "ada@example.com",
            "nested": [{"phone": "123", "email": ""}],
        }

        assert sanitize_for_logging(data) == {
            "customer_name": "Ada",
            "customer_phone": REDACTED,
            "customer_email": REDACTED,
            "nested": [{"phone": REDACTED, "email": ""}],
        }

    def test_does_not_mutate_input(self) -> None:
        data = {"customer_phone": "123"}
        sanitize_for_logging(data)
        assert data == {"customer_phone": "123"}

    def test_primitives_pass_through(self) -> None:
        assert sanitize_for_logging("text") == "text"
        assert sanitize_for_logging(None) is None


class TestDefaultObservabilityManager:
    """Tests for DefaultObservabilityManager."""

    @pytest.fixture
    def manager(self) -> DefaultObservabilityManager:
        manager = DefaultObservabilityManager(log_level="DEBUG", json_format=True)
        manager._logger = MagicMock()
        return manager

    @pytest.mark.asyncio
    async def test_log_dispatches_on_level(self, manager: DefaultObservabilityManager) -> None:
        await manager.log("WARNING", "Spot released", {"spot_id": "A1"})

        manager._logger.warning.assert_called_once_with("Spot released", spot_id="A1")

    @pytest.mark.asyncio
    async def test_log_without_context(self, manager: DefaultObservabilityManager) -> None:
        await manager.log("info", "Booking created")

        manager._logger.info.assert_called_once_with("Booking created")

    @pytest.mark.asyncio
    async def test_log_redacts_context(self, manager: DefaultObservabilityManager) -> None:
        await manager.log("INFO", "Booking created", {"customer_phone": "555"})

        manager._logger.info.assert_called_once_with(
            "Booking created", customer_phone=REDACTED
        )

    @pytest.mark.asyncio
    async def test_emit_event_adds_timestamp(self, manager: DefaultObservabilityManager) -> None:
        """Test that metadata without a timestamp gets one."""
        await manager.emit_event(
            "booking_created",
            {"resource_id": "b1", "customer_email": "a@b.co"},
            metadata={"tenant_id": "acme"},
        )

        _, kwargs = manager._logger.info.call_args
        assert kwargs["event_type"] == "booking_created"
        assert kwargs["customer_email"] == REDACTED
        assert kwargs["metadata"]["tenant_id"] == "acme"
        assert "timestamp" in kwargs["metadata"]

    @pytest.mark.asyncio
    async def test_logging_failure_raises_observability_error(
        self, manager: DefaultObservabilityManager
    ) -> None:
        manager._logger.error.side_effect = RuntimeError("handler closed")

        with pytest.raises(ObservabilityError):
            await manager.log("ERROR", "boom")
