"""Configuration file loader for YAML and JSON files."""

import json
import os
from pathlib import Path
from typing import Any

import yaml

from valetflow.infrastructure.config.errors import ConfigurationError
from valetflow.infrastructure.config.settings import ValetFlowSettings

CONFIG_FILE_ENV = "VALETFLOW_CONFIG_FILE"


class ConfigurationFileLoader:
    """Loads settings from YAML or JSON files.

    The file holds a single mapping of setting names to values, optionally
    nested under a top-level ``valetflow`` key:

    ```yaml
    valetflow:
      rate_limit_max_requests: 60
      counter_shards: 8
      store_backend: mongodb
      mongodb_url: mongodb://localhost:27017/?replicaSet=rs0
    ```
    """

    def __init__(self, config_file_path: str | Path | None = None) -> None:
        """Initialize ConfigurationFileLoader.

        Args:
            config_file_path: Path to configuration file. If None, the path is
                read from the VALETFLOW_CONFIG_FILE environment variable.

        Raises:
            ConfigurationError: If no path is available or the file does
                not exist.
        """
        if config_file_path is None:
            config_file_path = os.getenv(CONFIG_FILE_ENV)
            if not config_file_path:
                raise ConfigurationError(
                    f"Configuration file path not provided and {CONFIG_FILE_ENV} "
                    "environment variable is not set"
                )

        self._config_path = Path(config_file_path)
        if not self._config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self._config_path}")

    def load(self) -> dict[str, Any]:
        """Load the raw configuration mapping.

        The format is detected from the file extension.

        Raises:
            ConfigurationError: If the format is unsupported or the file
                cannot be parsed.
        """
        suffix = self._config_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            data = self._load_yaml()
        elif suffix == ".json":
            data = self._load_json()
        else:
            raise ConfigurationError(
                f"Unsupported configuration file format: {suffix}. "
                "Supported formats: .yaml, .yml, .json"
            )

        if "valetflow" in data:
            section = data["valetflow"]
            if not isinstance(section, dict):
                raise ConfigurationError(
                    "Configuration 'valetflow' must be a mapping", field="valetflow"
                )
            return section
        return data

    def _load_yaml(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
                if data is None:
                    return {}
                if not isinstance(data, dict):
                    raise ConfigurationError("YAML file must contain a dictionary/mapping")
                return data
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def _load_json(self) -> dict[str, Any]:
        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
                if not isinstance(data, dict):
                    raise ConfigurationError("JSON file must contain an object")
                return data
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    def validate_structure(self, config: dict[str, Any]) -> None:
        """Reject keys that are not known settings.

        Raises:
            ConfigurationError: If an unknown key is present.
        """
        allowed_keys = set(ValetFlowSettings.model_fields)
        for key in config:
            if key not in allowed_keys:
                raise ConfigurationError(
                    f"Unknown configuration key: '{key}'",
                    field=key,
                )


def load_settings(config_file_path: str | Path | None = None) -> ValetFlowSettings:
    """Build settings from a configuration file.

    Values from the file take precedence over environment variables.

    Args:
        config_file_path: YAML or JSON file. Falls back to VALETFLOW_CONFIG_FILE.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: If the file is missing, malformed, names an
            unknown setting or holds an invalid value.
    """
    loader = ConfigurationFileLoader(config_file_path)
    config = loader.load()
    loader.validate_structure(config)
    return ValetFlowSettings.from_dict(config)
