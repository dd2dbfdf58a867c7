"""
Unit tests for Caissier configuration.

Usage:
    pytest tests/unit/config/test_settings.py
"""

import pytest
from pydantic import ValidationError

from caissier.config import (
    CaissierConfig,
    get_settings,
    load_config,
    reset_settings,
)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Isolated config directory selected through the environment."""
    monkeypatch.setenv("CAISSIER_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("CAISSIER_CONFIG", raising=False)
    return tmp_path


class TestCaissierConfig:
    """Tests for schema defaults and validation."""

    # ================================================================
    # Defaults
    # ================================================================

    def test_defaults(self):
        """Test documented default values."""
        config = CaissierConfig()

        assert config.api_port == 8770
        assert config.poller.max_retries == 30
        assert config.poller.initial_delay_ms == 1000
        assert config.poller.max_delay_ms == 10000
        assert config.blockhash.max_retries == 3
        assert config.blockhash.cache_enabled is False
        assert config.verification.unavailable_status_codes == [401, 403, 502]
        assert config.registry.backend == "memory"
        assert config.registry.terminal_wait_attempts == 60
        assert config.explorer.name == "Solscan"

    def test_redis_url(self):
        """Test the computed Redis URL."""
        config = CaissierConfig(redis={"host": "cache", "port": 6380, "db": 2})

        assert config.redis_url == "redis://cache:6380/2"

    def test_explorer_url(self):
        """Test explorer links for a signature."""
        config = CaissierConfig()

        assert config.explorer.tx_url("abc") == "https://solscan.io/tx/abc"

    # ================================================================
    # Validation
    # ================================================================

    def test_log_level_normalized(self):
        """Test log level is case-insensitive."""
        assert CaissierConfig(log_level="DEBUG").log_level == "debug"

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            CaissierConfig(log_level="verbose")

    def test_invalid_registry_backend(self):
        """Test only memory and redis backends exist."""
        with pytest.raises(ValidationError):
            CaissierConfig(registry={"backend": "postgres"})

    def test_poller_bounds(self):
        """Test out-of-range polling settings are rejected."""
        with pytest.raises(ValidationError):
            CaissierConfig(poller={"max_retries": 0})

    # ================================================================
    # Environment
    # ================================================================

    def test_nested_env_override(self, monkeypatch):
        """Test CAISSIER_SECTION__KEY overrides nested values."""
        monkeypatch.setenv("CAISSIER_POLLER__MAX_RETRIES", "12")
        monkeypatch.setenv("CAISSIER_RPC__HELIUS_API_KEY", "helius-key-123456")

        config = CaissierConfig()

        assert config.poller.max_retries == 12
        assert config.rpc.endpoints()[0].endswith("api-key=helius-key-123456")


class TestLoadConfig:
    """Tests for YAML layering."""

    def test_environment_yaml_overrides_default(self, config_dir):
        """Test ENV selects the file layered over default.yaml."""
        (config_dir / "default.yaml").write_text(
            "api_port: 9000\npoller:\n  max_retries: 20\n  settle_delay: 2.0\n"
        )
        (config_dir / "test.yaml").write_text("poller:\n  max_retries: 4\n")

        config = load_config()

        assert config.api_port == 9000
        assert config.poller.max_retries == 4
        assert config.poller.settle_delay == 2.0

    def test_explicit_config_file(self, config_dir):
        """Test a named file replaces the ENV selection."""
        (config_dir / "test.yaml").write_text("api_port: 9001\n")
        (config_dir / "custom.yaml").write_text("api_port: 9002\n")

        assert load_config("custom.yaml").api_port == 9002

    def test_config_file_from_env(self, config_dir, monkeypatch):
        """Test CAISSIER_CONFIG names the file."""
        (config_dir / "custom.yaml").write_text("api_port: 9003\n")
        monkeypatch.setenv("CAISSIER_CONFIG", "custom.yaml")

        assert load_config().api_port == 9003

    def test_env_wins_over_yaml(self, config_dir, monkeypatch):
        """Test environment variables beat YAML values."""
        (config_dir / "test.yaml").write_text(
            "registry:\n  backend: memory\n  key_prefix: from-yaml\n"
        )
        monkeypatch.setenv("CAISSIER_REGISTRY__BACKEND", "redis")

        config = load_config()

        assert config.registry.backend == "redis"
        assert config.registry.key_prefix == "from-yaml"

    def test_missing_files_fall_back_to_defaults(self, config_dir):
        """Test an empty config directory yields schema defaults."""
        config = load_config()

        assert config.poller.max_retries == 30

    def test_get_settings_is_cached(self, config_dir):
        """Test get_settings returns one instance until reset."""
        reset_settings()
        try:
            first = get_settings()
            assert get_settings() is first
            reset_settings()
            assert get_settings() is not first
        finally:
            reset_settings()
