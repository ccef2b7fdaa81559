"""
Unit tests for configuration management.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from fuel_sync.config import (
    AppConfig,
    LoggingConfig,
    SyncConfig,
    TokenConfig,
    TransportConfig,
    get_config,
    reset_config,
    set_config,
)


class TestDefaults:
    """Default values of each configuration section."""

    def test_transport_defaults(self):
        config = TransportConfig()

        assert config.default_timeout == 30.0
        assert config.retry_attempts == 3
        assert config.backoff_base == 1.5
        assert config.backoff_max == 30.0

    def test_token_defaults(self):
        config = TokenConfig()

        assert config.renewal_buffer_seconds == 300
        assert config.login_path == "/v1/login"
        assert config.monitor_interval_seconds == 600

    def test_sync_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = SyncConfig()

        assert config.network_external_id == "15"
        assert config.batch_size == 500
        assert config.default_window_days == 7
        assert config.station_cache_ttl_seconds == 300
        assert config.auto_sync_interval_seconds == 900

    def test_retry_attempts_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            TransportConfig(retry_attempts=0)


class TestEnvironment:
    """Values read from environment variables."""

    def test_network_id_from_env(self):
        with patch.dict(os.environ, {"TRADING_NETWORK_ID": "42"}):
            assert SyncConfig().network_external_id == "42"

    def test_log_level_normalized(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}):
            assert LoggingConfig().level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            LoggingConfig(level="chatty")

    def test_environment_name(self):
        with patch.dict(os.environ, {"APP_ENV": "production"}):
            assert AppConfig.from_env().environment == "production"


class TestGlobalConfig:
    """get_config / set_config / reset_config."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = AppConfig(sync=SyncConfig(batch_size=10))
        set_config(custom)

        assert get_config().sync.batch_size == 10

        reset_config()
        assert get_config() is not custom
