"""
Centralized configuration management for the fuel_sync package.

This module provides a unified configuration system with support for:
- Environment variables
- Transport retry/timeout policy
- Token renewal and synchronization tuning
- Validation using Pydantic
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LogLevel


class DatabaseConfig(BaseModel):
    """Database pool configuration."""

    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class TransportConfig(BaseModel):
    """Timeout and retry policy for outbound HTTP calls."""

    default_timeout: float = Field(default=30.0, gt=0, description="Request timeout (seconds)")
    retry_attempts: int = Field(
        default=3, ge=1, description="Total attempts for retryable failures"
    )
    backoff_base: float = Field(
        default=1.5, ge=0, description="Linear backoff step per attempt (seconds)"
    )
    backoff_max: float = Field(default=30.0, ge=0, description="Maximum backoff (seconds)")


class TokenConfig(BaseModel):
    """Bearer token renewal settings."""

    renewal_buffer_seconds: int = Field(
        default=300, ge=0, description="Renew when fewer seconds than this remain"
    )
    login_path: str = Field(default="/v1/login", description="Renewal endpoint path")
    monitor_interval_seconds: float = Field(
        default=600, gt=0, description="Interval between background token checks"
    )


class SyncConfig(BaseModel):
    """Transaction synchronization tuning."""

    network_external_id: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.TRADING_NETWORK_ID.value, "15"),
        description="External id of the network synced when no station is given",
    )
    batch_size: int = Field(default=500, ge=1, description="Records per upsert batch")
    batch_pause_seconds: float = Field(default=0.1, ge=0, description="Pause between batches")
    station_pause_seconds: float = Field(default=0.5, ge=0, description="Pause between stations")
    default_window_days: int = Field(default=7, ge=1, description="Default fetch window")
    station_cache_ttl_seconds: int = Field(
        default=300, ge=0, description="Station mapping cache lifetime"
    )
    auto_sync_interval_seconds: float = Field(
        default=900, gt=0, description="Interval between scheduled synchronizations"
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true",
        description="Debug mode",
    )

    # Sub-configurations
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    transport: TransportConfig = Field(
        default_factory=TransportConfig, description="Transport configuration"
    )
    token: TokenConfig = Field(default_factory=TokenConfig, description="Token configuration")
    sync: SyncConfig = Field(default_factory=SyncConfig, description="Sync configuration")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
