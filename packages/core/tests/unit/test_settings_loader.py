"""Tests for ValetFlowSettings and the configuration file loader."""

import json
from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from valetflow.infrastructure.config.errors import ConfigurationError
from valetflow.infrastructure.config.file_loader import (
    ConfigurationFileLoader,
    load_settings,
)
from valetflow.infrastructure.config.settings import ValetFlowSettings


class TestValetFlowSettings:
    """Tests for ValetFlowSettings."""

    def test_defaults(self) -> None:
        settings = ValetFlowSettings.from_dict({})

        assert settings.rate_limit_max_requests == 30
        assert settings.rate_limit_window_seconds == 60
        assert settings.spot_lock_timeout == timedelta(seconds=30)
        assert settings.counter_shards == 5
        assert settings.ticket_number_base == 1000
        assert settings.idempotency_ttl == timedelta(hours=24)
        assert settings.strict_idempotency is False
        assert settings.store_backend == "memory"
        assert settings.rate_limit_backend == "none"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that VALETFLOW_ variables are read."""
        monkeypatch.setenv("VALETFLOW_COUNTER_SHARDS", "8")
        monkeypatch.setenv("VALETFLOW_STRICT_IDEMPOTENCY", "true")

        settings = ValetFlowSettings()

        assert settings.counter_shards == 8
        assert settings.strict_idempotency is True

    @pytest.mark.parametrize(
        ("config", "field"),
        [
            ({"counter_shards": 0}, "counter_shards"),
            ({"rate_limit_max_requests": -1}, "rate_limit_max_requests"),
            ({"list_default_limit": 500}, "list_default_limit"),
            ({"store_backend": "postgres"}, "store_backend"),
        ],
    )
    def test_invalid_values(self, config: dict, field: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ValetFlowSettings.from_dict(config)

        assert exc_info.value.field == field

    @pytest.mark.parametrize(
        "config",
        [
            {"rate_limit_backend": "redis"},
            {"store_backend": "mongodb"},
            {"log_level": "LOUD"},
        ],
    )
    def test_cross_field_checks(self, config: dict, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that backends without connection URLs are rejected."""
        monkeypatch.delenv("VALETFLOW_REDIS_URL", raising=False)
        monkeypatch.delenv("VALETFLOW_MONGODB_URL", raising=False)

        with pytest.raises(ConfigurationError):
            ValetFlowSettings.from_dict(config)

    def test_error_string_names_field(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ValetFlowSettings.from_dict({"counter_shards": 0})

        assert "counter_shards" in str(exc_info.value)


class TestConfigurationFileLoader:
    """Tests for ConfigurationFileLoader."""

    def test_init_with_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the path falls back to VALETFLOW_CONFIG_FILE."""
        config_file = tmp_path / "valetflow.yaml"
        config_file.write_text("counter_shards: 3")
        monkeypatch.setenv("VALETFLOW_CONFIG_FILE", str(config_file))

        assert ConfigurationFileLoader().load() == {"counter_shards": 3}

    def test_init_no_path_no_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("VALETFLOW_CONFIG_FILE", raising=False)

        with pytest.raises(ConfigurationError, match="Configuration file path not provided"):
            ConfigurationFileLoader()

    def test_init_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            ConfigurationFileLoader(tmp_path / "missing.yaml")

    def test_load_nested_section(self, tmp_path: Path) -> None:
        """Test that settings may sit under a top-level valetflow key."""
        config_file = tmp_path / "config.yml"
        config_file.write_text(yaml.dump({"valetflow": {"rate_limit_max_requests": 60}}))

        assert ConfigurationFileLoader(config_file).load() == {"rate_limit_max_requests": 60}

    def test_load_json(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"counter_shards": 7}))

        assert ConfigurationFileLoader(config_file).load() == {"counter_shards": 7}

    def test_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert ConfigurationFileLoader(config_file).load() == {}

    @pytest.mark.parametrize(
        ("name", "content", "message"),
        [
            ("config.toml", "a = 1", "Unsupported configuration file format"),
            ("config.yaml", "counter_shards: [unclosed", "Invalid YAML format"),
            ("config.yaml", "- a\n- b\n", "must contain a dictionary"),
            ("config.json", "{not json", "Invalid JSON format"),
            ("config.json", "[1, 2]", "must contain an object"),
            ("config.yaml", "valetflow: 3", "must be a mapping"),
        ],
    )
    def test_load_errors(self, tmp_path: Path, name: str, content: str, message: str) -> None:
        config_file = tmp_path / name
        config_file.write_text(content)

        with pytest.raises(ConfigurationError, match=message):
            ConfigurationFileLoader(config_file).load()

    def test_validate_structure_rejects_unknown_keys(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("counter_shards: 3")
        loader = ConfigurationFileLoader(config_file)

        with pytest.raises(ConfigurationError, match="Unknown configuration key: 'shards'"):
            loader.validate_structure({"shards": 3})


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_load_settings(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump({"valetflow": {"counter_shards": 9, "spot_lock_timeout_seconds": 45}})
        )

        settings = load_settings(config_file)

        assert settings.counter_shards == 9
        assert settings.spot_lock_timeout == timedelta(seconds=45)

    def test_load_settings_invalid_value(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"ticket_number_base": -5}))

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(config_file)

        assert exc_info.value.field == "ticket_number_base"
