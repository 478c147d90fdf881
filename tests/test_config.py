"""
Tests for service configuration.
"""

import pytest

from backend.skillvalidator.config import DEFAULT_MODEL, Settings
from backend.skillvalidator.errors import ConfigError


class TestSettings:
    """Tests for Settings.load."""

    def test_defaults(self):
        """Test defaults with an empty environment."""
        settings = Settings.load(environ={})
        assert settings.port == 3200
        assert settings.llm_provider == "anthropic"
        assert settings.llm_model == DEFAULT_MODEL
        assert settings.api_key is None
        assert settings.quality_timeout_s == 60.0
        assert settings.issue_debounce_ms == 500
        assert settings.service_name == "skill-validator"

    def test_environment_overrides(self):
        """Test environment variables are cast to their types."""
        settings = Settings.load(environ={
            "VALIDATOR_PORT": "8080",
            "ANTHROPIC_API_KEY": "sk-test",
            "QUALITY_TIMEOUT_S": "12.5",
            "LOG_LEVEL": "DEBUG",
        })
        assert settings.port == 8080
        assert settings.api_key == "sk-test"
        assert settings.quality_timeout_s == 12.5
        assert settings.log_level == "DEBUG"

    def test_yaml_file(self, tmp_path):
        """Test values from a YAML file, with the environment winning."""
        config = tmp_path / "config.yaml"
        config.write_text(
            "server:\n"
            "  port: 4000\n"
            "llm:\n"
            "  model: claude-test\n"
            "issues:\n"
            "  debounce_ms: 250\n"
            "feature_flags:\n"
            "  beta: true\n"
        )
        settings = Settings.load(config, environ={"VALIDATOR_PORT": "5000"})
        assert settings.port == 5000
        assert settings.llm_model == "claude-test"
        assert settings.issue_debounce_ms == 250
        assert settings.extra == {"feature_flags": {"beta": True}}

    def test_config_path_from_environment(self, tmp_path):
        """Test SKILL_VALIDATOR_CONFIG locates the file."""
        config = tmp_path / "validator.yaml"
        config.write_text("log_level: WARNING\n")
        settings = Settings.load(environ={"SKILL_VALIDATOR_CONFIG": str(config)})
        assert settings.log_level == "WARNING"

    def test_missing_file(self, tmp_path):
        """Test a missing config file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            Settings.load(tmp_path / "missing.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        """Test unparseable YAML raises ConfigError."""
        config = tmp_path / "bad.yaml"
        config.write_text("server: [unclosed\n")
        with pytest.raises(ConfigError, match="YAML parse error"):
            Settings.load(config, environ={})

    def test_not_a_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            Settings.load(config, environ={})

    def test_invalid_value(self):
        """Test a value of the wrong type raises ConfigError."""
        with pytest.raises(ConfigError, match="VALIDATOR_PORT"):
            Settings.load(environ={"VALIDATOR_PORT": "eighty"})
