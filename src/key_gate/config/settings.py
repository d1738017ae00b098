"""Settings configuration for the Key Gate server."""

import contextlib
import os
import tomllib
from pathlib import Path
from typing import Any

import orjson
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from key_gate.config.discovery import find_toml_config_file

from .cors import CORSSettings
from .keys import KeyLifecycleSettings
from .rate_limit import RateLimitSettings
from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .server import ServerSettings
from .storage import StorageSettings


__all__ = [
    "Settings",
    "ConfigurationError",
    "get_settings",
]


class ConfigurationError(ValueError):
    """Raised when configuration loading or validation fails."""


def _coerce_settings(value: Any, settings_class: type) -> Any:
    """Coerce value to settings class instance.

    Handles: None → default, dict → instance, passthrough existing instances.
    """
    if value is None:
        return settings_class()
    if isinstance(value, settings_class):
        return value
    if isinstance(value, dict):
        return settings_class(**value)
    if hasattr(value, "model_dump"):
        return settings_class(**value.model_dump())
    return value


class Settings(BaseSettings):
    """
    Configuration settings for the Key Gate server.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Values from the TOML file and explicit overrides are passed as init arguments and
    therefore win over environment variables; environment variables win over defaults.
    TOML configuration files are looked up in the following order:
    1. .key_gate.toml / key_gate.toml in current directory
    2. the same names in the git repository root
    3. config.toml in user config directory/key_gate/ (platform-specific)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="KEYGATE_",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    security: SecuritySettings = Field(
        default_factory=SecuritySettings,
        description="Security configuration settings",
    )

    cors: CORSSettings = Field(
        default_factory=CORSSettings,
        description="CORS configuration settings",
    )

    storage: StorageSettings = Field(
        default_factory=StorageSettings,
        description="Key database location",
    )

    keys: KeyLifecycleSettings = Field(
        default_factory=KeyLifecycleSettings,
        description="Key lifecycle configuration",
    )

    rate_limit: RateLimitSettings = Field(
        default_factory=RateLimitSettings,
        description="Per-address rate limits",
    )

    scheduler: SchedulerSettings = Field(
        default_factory=SchedulerSettings,
        description="Background expiry sweep configuration",
    )

    @field_validator("server", mode="before")
    @classmethod
    def validate_server(cls, v: Any) -> Any:
        return _coerce_settings(v, ServerSettings)

    @field_validator("security", mode="before")
    @classmethod
    def validate_security(cls, v: Any) -> Any:
        return _coerce_settings(v, SecuritySettings)

    @field_validator("cors", mode="before")
    @classmethod
    def validate_cors(cls, v: Any) -> Any:
        return _coerce_settings(v, CORSSettings)

    @field_validator("storage", mode="before")
    @classmethod
    def validate_storage(cls, v: Any) -> Any:
        return _coerce_settings(v, StorageSettings)

    @field_validator("keys", mode="before")
    @classmethod
    def validate_keys(cls, v: Any) -> Any:
        return _coerce_settings(v, KeyLifecycleSettings)

    @field_validator("rate_limit", mode="before")
    @classmethod
    def validate_rate_limit(cls, v: Any) -> Any:
        return _coerce_settings(v, RateLimitSettings)

    @field_validator("scheduler", mode="before")
    @classmethod
    def validate_scheduler(cls, v: Any) -> Any:
        return _coerce_settings(v, SchedulerSettings)

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Args:
            toml_path: Path to the TOML configuration file

        Returns:
            dict: Configuration data from the TOML file

        Raises:
            ValueError: If the TOML file is invalid or cannot be read
        """
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ValueError(f"Cannot read TOML config file {toml_path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings instance from configuration file.

        Args:
            config_path: Path to configuration file. Can be:
                - None: Auto-discover config file or use CONFIG_FILE env var
                - Path or str: Use this specific config file
            **kwargs: Additional keyword arguments to override config values

        Returns:
            Settings: Configured Settings instance
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path and config_path.exists():
            if config_path.suffix.lower() != ".toml":
                raise ValueError(
                    f"Unsupported config file format: {config_path.suffix}. "
                    "Only TOML (.toml) files are supported."
                )
            config_data = cls.load_toml_config(config_path)

        # Section-level merge so an override of one field keeps the file's others
        merged_config = dict(config_data)
        for section, value in kwargs.items():
            current = merged_config.get(section)
            if isinstance(current, dict) and isinstance(value, dict):
                merged_config[section] = {**current, **value}
            else:
                merged_config[section] = value

        return cls(**merged_config)


def get_settings(config_path: Path | str | None = None) -> Settings:
    """Get the settings instance with configuration file support.

    Args:
        config_path: Optional path to configuration file. If None, uses CONFIG_FILE env var
                    or auto-discovers config file.

    Returns:
        Settings: Configured Settings instance

    Raises:
        ConfigurationError: If the configuration cannot be loaded
    """
    try:
        cli_overrides: dict[str, Any] = {}
        cli_overrides_json = os.environ.get("KEYGATE_CONFIG_OVERRIDES")
        if cli_overrides_json:
            with contextlib.suppress(orjson.JSONDecodeError):
                cli_overrides = orjson.loads(cli_overrides_json)

        return Settings.from_config(config_path=config_path, **cli_overrides)
    except (OSError, ValueError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Configuration error: {e}") from e
