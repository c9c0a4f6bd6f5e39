# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Core configuration - centralized config for the meetd package.

All environment-based configuration flows through this module.

Usage:
    from meetd.core.config import get_config
    config = get_config()

    ttl = config.proposal_ttl
    log_level = config.log_level
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Entries younger than this must never be purged from the nonce ledger.
MIN_NONCE_RETENTION_HOURS = 24


class CoreSettings(BaseSettings):
    """Core configuration settings for Meetd.

    Settings can be configured via environment variables with the
    MEETD_ prefix, or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # SERVER SETTINGS
    # ==========================================================================

    server_url: str = Field(
        default="http://localhost:8080",
        description="Public base URL, used to build accept links",
        validation_alias="MEETD_SERVER_URL",
    )

    # ==========================================================================
    # DATABASE SETTINGS
    # ==========================================================================

    db_host: str = Field(
        default="127.0.0.1",
        description="Database host",
        validation_alias="MEETD_DB_HOST",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
        validation_alias="MEETD_DB_PORT",
    )
    db_name: str = Field(
        default="meetd",
        description="Database name",
        validation_alias="MEETD_DB_NAME",
    )
    db_user: str = Field(
        default="meetd",
        description="Database user",
        validation_alias="MEETD_DB_USER",
    )
    db_password: str = Field(
        default="",
        description="Database password",
        validation_alias="MEETD_DB_PASSWORD",
    )
    db_pool_min: int = Field(
        default=1,
        description="Minimum pool connections",
        validation_alias="MEETD_DB_POOL_MIN",
    )
    db_pool_max: int = Field(
        default=10,
        description="Maximum pool connections",
        validation_alias="MEETD_DB_POOL_MAX",
    )
    db_pool_timeout: int = Field(
        default=10,
        description="Seconds to wait for a pooled connection",
        validation_alias="MEETD_DB_POOL_TIMEOUT",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="MEETD_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="MEETD_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="MEETD_LOG_FILE",
    )

    # ==========================================================================
    # PROTOCOL SETTINGS
    # ==========================================================================

    proposal_ttl_days: int = Field(
        default=7,
        description="Days until an issued proposal expires",
        validation_alias="MEETD_PROPOSAL_TTL_DAYS",
    )
    nonce_retention_hours: int = Field(
        default=MIN_NONCE_RETENTION_HOURS,
        description="Hours a used nonce is kept before it may be purged",
        validation_alias="MEETD_NONCE_RETENTION_HOURS",
    )
    sweep_interval_seconds: int = Field(
        default=300,
        description="Interval between expiry sweeps and nonce purges",
        validation_alias="MEETD_SWEEP_INTERVAL_SECONDS",
    )

    # ==========================================================================
    # WEBHOOK SETTINGS
    # ==========================================================================

    webhook_timeout_seconds: float = Field(
        default=10.0,
        description="Total timeout for a single webhook POST",
        validation_alias="MEETD_WEBHOOK_TIMEOUT_SECONDS",
    )
    webhook_tolerance_seconds: int = Field(
        default=300,
        description="Maximum clock skew accepted when verifying a webhook",
        validation_alias="MEETD_WEBHOOK_TOLERANCE_SECONDS",
    )
    webhook_max_concurrency: int = Field(
        default=16,
        description="Maximum in-flight webhook deliveries",
        validation_alias="MEETD_WEBHOOK_MAX_CONCURRENCY",
    )
    webhook_max_pending: int = Field(
        default=1000,
        description="Maximum queued webhook deliveries before new events are dropped",
        validation_alias="MEETD_WEBHOOK_MAX_PENDING",
    )

    # ==========================================================================
    # AVAILABILITY SETTINGS
    # ==========================================================================

    max_slots: int = Field(
        default=20,
        description="Maximum ranked slots returned by an availability query",
        validation_alias="MEETD_MAX_SLOTS",
    )

    # ==========================================================================
    # GOOGLE CALENDAR SETTINGS
    # ==========================================================================

    google_client_id: str = Field(
        default="",
        description="Google OAuth client id",
        validation_alias="GOOGLE_CLIENT_ID",
    )
    google_client_secret: str = Field(
        default="",
        description="Google OAuth client secret",
        validation_alias="GOOGLE_CLIENT_SECRET",
    )

    @field_validator("nonce_retention_hours")
    @classmethod
    def _retention_floor(cls, value: int) -> int:
        if value < MIN_NONCE_RETENTION_HOURS:
            raise ValueError(f"nonce retention must be at least {MIN_NONCE_RETENTION_HOURS} hours")
        return value

    @field_validator("proposal_ttl_days", "max_slots", "webhook_max_concurrency", "webhook_max_pending")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def proposal_ttl(self) -> timedelta:
        return timedelta(days=self.proposal_ttl_days)

    @property
    def nonce_retention(self) -> timedelta:
        return timedelta(hours=self.nonce_retention_hours)

    @property
    def connection_params(self) -> dict:
        """Get database connection parameters dict."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }

    @property
    def google_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
