"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation.
Values are read once at startup; an optional config.yaml supplies defaults
that environment variables override.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = os.environ.get("AUDITRELAY_CONFIG_FILE")

    if config_path is None:
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/auditrelay
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class SalesforceSettings(BaseSettings):
    """Inbound callback authentication."""

    security_token: Optional[str] = Field(
        default=None,
        description="Shared secret Salesforce sends in the request body",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.security_token)

    model_config = SettingsConfigDict(env_prefix="SALESFORCE_")


class SlackSettings(BaseSettings):
    """Slack incoming webhook configuration."""

    webhook_url: Optional[str] = Field(default=None, description="Slack incoming webhook URL")

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    model_config = SettingsConfigDict(env_prefix="SLACK_")


class DispatcherSettings(BaseSettings):
    """Drip dispatcher configuration."""

    # 1.1 seconds keeps us under Slack's 1 message/second webhook limit
    throttle_delay_ms: int = Field(default=1100, description="Interval between dispatcher ticks")
    delivery_timeout_seconds: float = Field(default=5.0, description="Upper bound for one delivery attempt")
    unhealthy_after_failures: int = Field(
        default=10,
        description="Consecutive delivery failures before readiness reports unhealthy",
    )
    enabled: bool = Field(default=True, description="Start the dispatcher with the application")

    @field_validator("throttle_delay_ms")
    def validate_throttle_delay(cls, v: int) -> int:
        """Throttle interval must be positive."""
        if v <= 0:
            raise ValueError("throttle_delay_ms must be greater than zero")
        return v

    @field_validator("delivery_timeout_seconds")
    def validate_delivery_timeout(cls, v: float) -> float:
        """Delivery timeout must be positive."""
        if v <= 0:
            raise ValueError("delivery_timeout_seconds must be greater than zero")
        return v

    @property
    def throttle_delay_seconds(self) -> float:
        return self.throttle_delay_ms / 1000.0

    model_config = SettingsConfigDict(env_prefix="DISPATCHER_")


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Log level must be one the logging module knows."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{v}'")
        return level

    # Component settings
    salesforce: SalesforceSettings = Field(default_factory=SalesforceSettings)
    slack: SlackSettings = Field(default_factory=SlackSettings)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)

    model_config = SettingsConfigDict(case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "HOST",
        ("server", "port"): "PORT",
        ("server", "debug"): "DEBUG",
        ("server", "log_level"): "LOG_LEVEL",
        ("salesforce", "security_token"): "SALESFORCE_SECURITY_TOKEN",
        ("slack", "webhook_url"): "SLACK_WEBHOOK_URL",
        ("dispatcher", "throttle_delay_ms"): "DISPATCHER_THROTTLE_DELAY_MS",
        ("dispatcher", "delivery_timeout_seconds"): "DISPATCHER_DELIVERY_TIMEOUT_SECONDS",
        ("dispatcher", "unhealthy_after_failures"): "DISPATCHER_UNHEALTHY_AFTER_FAILURES",
        ("dispatcher", "enabled"): "DISPATCHER_ENABLED",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
