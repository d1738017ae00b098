"""Server configuration settings."""

import os

from pydantic import BaseModel, Field, field_validator


def _default_port() -> int:
    """Honour the conventional ``PORT`` variable used by hosting platforms."""
    try:
        return int(os.environ.get("PORT", "3000"))
    except ValueError:
        return 3000


class ServerSettings(BaseModel):
    """HTTP server and logging configuration."""

    host: str = Field(default="127.0.0.1", description="Server host address")

    port: int = Field(
        default_factory=_default_port,
        ge=1,
        le=65535,
        description="Server port number",
    )

    reload: bool = Field(default=False, description="Enable auto-reload")

    log_level: str = Field(default="INFO", description="Logging level")

    log_file: str | None = Field(
        default=None,
        description="Optional file to tee log output into",
    )

    json_logs: bool = Field(
        default=False,
        description="Render log lines as JSON instead of console output",
    )

    trust_forwarded_for: bool = Field(
        default=False,
        description="Use the first X-Forwarded-For entry as the client address",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level
