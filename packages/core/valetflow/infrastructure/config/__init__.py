"""Configuration infrastructure module."""

from valetflow.infrastructure.config.errors import ConfigurationError
from valetflow.infrastructure.config.file_loader import ConfigurationFileLoader, load_settings
from valetflow.infrastructure.config.settings import ValetFlowSettings

__all__ = [
    "ValetFlowSettings",
    "ConfigurationFileLoader",
    "ConfigurationError",
    "load_settings",
]
