"""Configuration management for agy-top.

This module handles all configuration loading and validation using Pydantic BaseSettings.
Configuration is loaded from environment variables and .env files.
"""

from .config import (
    DEFAULT_API_URL,
    DEFAULT_WEB_URL,
    ApplicationConfig,
    DiscoveryConfig,
    EstimationConfig,
    LeaderboardConfig,
    MonitoringConfig,
    StorageConfig,
    str_to_bool,
)


def load_config(**overrides) -> ApplicationConfig:
    """Load and validate application configuration."""
    return ApplicationConfig(**overrides)


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_WEB_URL",
    "ApplicationConfig",
    "DiscoveryConfig",
    "EstimationConfig",
    "LeaderboardConfig",
    "MonitoringConfig",
    "StorageConfig",
    "load_config",
    "str_to_bool",
]
