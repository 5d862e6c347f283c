"""Configuration classes for agy-top.

This module contains all configuration classes organized by domain.
Configuration is loaded from environment variables and .env files.
"""

from pathlib import Path
from typing import Any, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "https://api.paean.ai"
DEFAULT_WEB_URL = "https://app.paean.ai"


def str_to_bool(value: Any) -> bool:
    """Convert various string representations to boolean values.

    This function provides consistent boolean conversion from environment variables
    and other string sources. It can be used as a field validator for Pydantic models.

    Args:
        value: The value to convert. Can be bool, str, int, or any other type.

    Returns:
        bool: The converted boolean value.

    Examples:
        >>> str_to_bool("true")
        True
        >>> str_to_bool("0")
        False
        >>> str_to_bool("yes")
        True
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on", "enabled")
    if isinstance(value, int):
        return bool(value)
    return bool(value)


def _validate_http_url(value: str, field_name: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"{field_name} must start with http:// or https://")
    return value.rstrip("/")


class DiscoveryConfig(BaseSettings):
    """Language server discovery and local API settings."""

    # Process matching
    process_name: str = "language_server"
    port_flag: str = "--extension_server_port"
    data_dir_flag: str = "--app_data_dir"
    data_dir_prefix: str = "antigravity"
    process_list_timeout: float = 5.0
    windows_process_list_timeout: float = 10.0

    # Local API
    port_probe_timeout: float = Field(default=2.0, alias="AGY_PROBE_TIMEOUT")
    local_fetch_timeout: float = Field(default=10.0, alias="AGY_FETCH_TIMEOUT")
    local_host: str = "127.0.0.1"
    local_service_path: str = "exa.language_server_pb.LanguageServerService"
    csrf_header: str = "X-Codeium-Csrf-Token"

    @field_validator("port_probe_timeout", "local_fetch_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Timeouts must be positive so a hung endpoint is always cancelled."""
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v


class LeaderboardConfig(BaseSettings):
    """Remote leaderboard service settings."""

    api_url: str = Field(default=DEFAULT_API_URL, alias="AGY_API_URL")
    web_url: str = Field(default=DEFAULT_WEB_URL, alias="AGY_WEB_URL")
    leaderboard_prefix: str = "/agy"
    profile_path: str = "/user/profile"
    api_timeout: float = 30.0
    api_retry_attempts: int = 3
    api_retry_backoff_factor: float = 0.5
    insecure_tls: bool = Field(default=False, alias="AGY_INSECURE_TLS")
    client_name: str = "agy-top"
    client_version: str = "0.1.0"

    @field_validator("insecure_tls", mode="before")
    @classmethod
    def validate_insecure_tls(cls, v) -> bool:
        """Convert string boolean values to actual boolean."""
        return str_to_bool(v)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Ensure the API URL is properly formatted."""
        return _validate_http_url(v, "api_url")

    @field_validator("web_url")
    @classmethod
    def validate_web_url(cls, v: str) -> str:
        """Ensure the web URL is properly formatted."""
        return _validate_http_url(v, "web_url")


class EstimationConfig(BaseSettings):
    """Token estimation and submission policy settings."""

    # Upward jump (in percentage points) treated as a quota reset
    reset_jump_threshold: float = Field(default=50.0, alias="AGY_RESET_JUMP_THRESHOLD")
    tokens_per_exhausted_model: int = Field(default=50_000, alias="AGY_TOKENS_PER_MODEL")
    input_share: float = 0.6
    auto_submit_min_interval: int = 300
    manual_submit_min_interval: int = 3600

    @field_validator("input_share")
    @classmethod
    def validate_input_share(cls, v: float) -> float:
        """The input share is a fraction of one."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("input_share must be between 0 and 1")
        return v


class MonitoringConfig(BaseSettings):
    """Logging and refresh loop settings."""

    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_file: Optional[Path] = Field(default=None, alias="AGY_LOG_FILE")
    refresh_interval: int = 10
    max_fetch_failures: int = 3

    @field_validator("log_json", mode="before")
    @classmethod
    def validate_log_json(cls, v) -> bool:
        """Convert string boolean values to actual boolean."""
        return str_to_bool(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()


class StorageConfig(BaseSettings):
    """Local persisted state settings."""

    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "agy-top",
        alias="AGY_CONFIG_DIR",
    )
    config_file_name: str = "config.json"

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser() / self.config_file_name


class ApplicationConfig(
    DiscoveryConfig,
    LeaderboardConfig,
    EstimationConfig,
    MonitoringConfig,
    StorageConfig,
    BaseSettings
):
    """Main application configuration that combines all configuration domains."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def api_url_from_env(self) -> bool:
        """Whether the API URL was explicitly supplied rather than defaulted."""
        return "api_url" in self.model_fields_set

    def web_url_from_env(self) -> bool:
        """Whether the web URL was explicitly supplied rather than defaulted."""
        return "web_url" in self.model_fields_set
