"""
Unit tests for configuration loading, credentials and logging setup.

Tests strict validation and error handling for the config file.
"""

import logging
import os
import tempfile
from pathlib import Path

import pytest
import yaml

from falcon_cost.config.credentials import (
    CredentialProvider,
    EnvCredentialProvider,
    MissingCredentialError,
    StaticCredentialProvider,
)
from falcon_cost.config.loader import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_PRICING_BASE_URL,
    FalconConfig,
    default_config_dir,
    load_config,
)
from falcon_cost.config.logging_setup import RedactingFilter, redact, setup_logging


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_missing_file_uses_defaults(self):
        config = load_config(config_dir=Path(self.temp_dir))

        assert config.config_dir == Path(self.temp_dir)
        assert config.api_key is None
        assert config.pricing_ttl_hours == 6.0
        assert config.history_limit == DEFAULT_HISTORY_LIMIT
        assert config.pricing_base_url == DEFAULT_PRICING_BASE_URL

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        self._write_config({
            "api_key": "fal-secret",
            "pricing_ttl_hours": 2,
            "history_limit": 50,
            "pricing_base_url": "https://example.test/v1/",
        })

        config = load_config(config_dir=Path(self.temp_dir))

        assert config.api_key == "fal-secret"
        assert config.pricing_ttl_hours == 2.0
        assert config.history_limit == 50
        assert config.pricing_base_url == "https://example.test/v1"

    def test_derived_paths(self):
        config = FalconConfig(config_dir=Path(self.temp_dir))
        assert config.history_path == Path(self.temp_dir) / "history.json"
        assert config.pricing_cache_path == Path(self.temp_dir) / "pricing.json"

    def test_explicit_path(self):
        path = self._write_config({"history_limit": 10}, filename="other.yaml")
        config = load_config(path=path, config_dir=Path(self.temp_dir))
        assert config.history_limit == 10

    def test_empty_file_uses_defaults(self):
        path = os.path.join(self.temp_dir, "config.yaml")
        Path(path).write_text("")
        config = load_config(config_dir=Path(self.temp_dir))
        assert config.history_limit == DEFAULT_HISTORY_LIMIT

    def test_unknown_keys_rejected(self):
        self._write_config({"history_limit": 10, "colour": "blue"})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(config_dir=Path(self.temp_dir))

    def test_non_mapping_rejected(self):
        self._write_config(["a", "b"])
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(config_dir=Path(self.temp_dir))

    def test_invalid_yaml(self):
        Path(self.temp_dir, "config.yaml").write_text("key: [unclosed")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_config(config_dir=Path(self.temp_dir))

    def test_wrong_types_rejected(self):
        self._write_config({"history_limit": "many"})
        with pytest.raises(ValueError, match="'history_limit' must be an integer"):
            load_config(config_dir=Path(self.temp_dir))

        self._write_config({"pricing_ttl_hours": True})
        with pytest.raises(ValueError, match="'pricing_ttl_hours' must be a number"):
            load_config(config_dir=Path(self.temp_dir))

        self._write_config({"api_key": 12345})
        with pytest.raises(ValueError, match="'api_key' must be a string"):
            load_config(config_dir=Path(self.temp_dir))

    def test_non_positive_values_rejected(self):
        self._write_config({"history_limit": 0})
        with pytest.raises(ValueError, match="history_limit must be > 0"):
            load_config(config_dir=Path(self.temp_dir))

        self._write_config({"pricing_ttl_hours": -1})
        with pytest.raises(ValueError, match="pricing_ttl_hours must be > 0"):
            load_config(config_dir=Path(self.temp_dir))

    def test_falcon_home_override(self, monkeypatch):
        monkeypatch.setenv("FALCON_HOME", self.temp_dir)
        assert default_config_dir() == Path(self.temp_dir)

    def test_default_home(self, monkeypatch):
        monkeypatch.delenv("FALCON_HOME", raising=False)
        assert default_config_dir() == Path.home() / ".falcon"


class TestCredentials:
    """Test API key resolution."""

    def test_env_takes_precedence(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FAL_KEY", "from-env")
        config = FalconConfig(config_dir=tmp_path, api_key="from-config")
        assert EnvCredentialProvider(config).get_api_key() == "from-env"

    def test_config_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("FAL_KEY", raising=False)
        config = FalconConfig(config_dir=tmp_path, api_key="from-config")
        assert EnvCredentialProvider(config).get_api_key() == "from-config"

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("FAL_KEY", raising=False)
        with pytest.raises(MissingCredentialError, match="FAL_KEY not found"):
            EnvCredentialProvider().get_api_key()

    def test_base_provider_is_abstract(self):
        with pytest.raises(TypeError):
            CredentialProvider()

        class Incomplete(CredentialProvider):
            pass

        with pytest.raises(TypeError):
            Incomplete()

    def test_static_provider(self):
        assert StaticCredentialProvider("k").get_api_key() == "k"
        with pytest.raises(ValueError):
            StaticCredentialProvider("")


class TestRedaction:
    """Test that credentials never reach log output."""

    def test_redacts_authorization_header(self):
        text = redact("headers={'Authorization': 'Key sk-very-secret'}")
        assert "sk-very-secret" not in text
        assert "[REDACTED]" in text

    def test_redacts_api_key_assignment(self):
        assert "abc123" not in redact("api_key=abc123 loaded")

    def test_leaves_plain_messages_alone(self):
        message = "Pricing refresh failed, using cached prices: 500"
        assert redact(message) == message

    def test_filter_rewrites_record(self):
        record = logging.LogRecord(
            "falcon_cost", logging.WARNING, __file__, 1,
            "using %s", ("FAL_KEY=topsecret",), None,
        )
        assert RedactingFilter().filter(record)
        assert "topsecret" not in record.getMessage()


class TestSetupLogging:
    """Test handler installation."""

    def teardown_method(self):
        logger = logging.getLogger("falcon_cost")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_console_only_by_default(self, monkeypatch):
        monkeypatch.delenv("FALCON_DEBUG", raising=False)
        setup_logging()

        handlers = logging.getLogger("falcon_cost").handlers
        assert len(handlers) == 1
        assert handlers[0].level == logging.WARNING

    def test_verbose_lowers_console_level(self, monkeypatch):
        monkeypatch.delenv("FALCON_DEBUG", raising=False)
        setup_logging(verbose=True)

        assert logging.getLogger("falcon_cost").handlers[0].level == logging.DEBUG

    def test_debug_env_adds_redacted_file_log(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FALCON_DEBUG", "1")
        monkeypatch.setenv("FALCON_LOG_LEVEL", "info")
        monkeypatch.setattr(tempfile, "gettempdir", lambda: str(tmp_path))
        setup_logging()

        logger = logging.getLogger("falcon_cost.test")
        logger.debug("hidden at info level")
        logger.info("using FAL_KEY=topsecret")
        for handler in logging.getLogger("falcon_cost").handlers:
            handler.flush()

        text = (tmp_path / "falcon-debug.log").read_text(encoding="utf-8")
        assert "[REDACTED]" in text
        assert "topsecret" not in text
        assert "hidden at info level" not in text
