"""Configuration settings using pydantic-settings."""

from datetime import timedelta
from typing import Any, Literal

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from valetflow.infrastructure.config.errors import ConfigurationError


class ValetFlowSettings(BaseSettings):
    """Configuration settings for valetflow.

    Settings can be loaded from environment variables or passed as a dictionary.
    Environment variables are prefixed with 'VALETFLOW_'
    (e.g., VALETFLOW_RATE_LIMIT_MAX_REQUESTS=60).

    Example:
        ```python
        # From environment variables
        settings = ValetFlowSettings()

        # From dictionary
        settings = ValetFlowSettings.from_dict({"counter_shards": 10})
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="VALETFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # Rate limiting
    rate_limit_max_requests: int = Field(
        default=30,
        gt=0,
        description="Requests a caller may make per window",
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        gt=0,
        description="Length of the fixed rate limit window in seconds",
    )
    rate_limit_backend: Literal["none", "store", "redis"] = Field(
        default="none",
        description="Shared counter layered behind the in-process limiter",
    )
    redis_url: str | None = Field(
        default=None,
        description="Redis URL, required when rate_limit_backend is 'redis'",
    )

    # Spots
    spot_lock_timeout_seconds: int = Field(
        default=30,
        gt=0,
        description="Age after which a soft lock is treated as abandoned",
    )

    # Booking creation
    counter_shards: int = Field(
        default=5,
        gt=0,
        description="Number of ticket counter shards per tenant",
    )
    ticket_number_base: int = Field(
        default=1000,
        ge=0,
        description="Offset added to every ticket number",
    )
    idempotency_ttl_seconds: int = Field(
        default=86400,
        gt=0,
        description="How long a cached create result is honored",
    )
    strict_idempotency: bool = Field(
        default=False,
        description="Check and record idempotency keys inside the create transaction",
    )
    list_default_limit: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Page size used when a list request names none",
    )

    # Store
    store_backend: Literal["memory", "mongodb"] = Field(
        default="memory",
        description="Document store implementation",
    )
    max_transaction_attempts: int = Field(
        default=5,
        gt=0,
        description="Attempts before a conflicting in-memory transaction fails",
    )
    mongodb_url: str | None = Field(
        default=None,
        description="MongoDB URL, required when store_backend is 'mongodb'",
    )
    mongodb_database: str = Field(
        default="valetflow",
        min_length=1,
        description="MongoDB database name",
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_json: bool = Field(
        default=True,
        description="Render JSON log lines instead of console output",
    )

    @model_validator(mode="after")
    def _check_backends(self) -> "ValetFlowSettings":
        if self.rate_limit_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when rate_limit_backend is 'redis'")
        if self.store_backend == "mongodb" and not self.mongodb_url:
            raise ValueError("mongodb_url is required when store_backend is 'mongodb'")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log_level: {self.log_level}")
        return self

    @property
    def spot_lock_timeout(self) -> timedelta:
        return timedelta(seconds=self.spot_lock_timeout_seconds)

    @property
    def idempotency_ttl(self) -> timedelta:
        return timedelta(seconds=self.idempotency_ttl_seconds)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "ValetFlowSettings":
        """Create settings from a dictionary.

        Args:
            config: Dictionary with configuration values.

        Returns:
            ValetFlowSettings instance.

        Raises:
            ConfigurationError: If a value is invalid.
        """
        try:
            return cls(**config)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise ConfigurationError(error["msg"], field=field) from e
