"""Security configuration settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecuritySettings(BaseSettings):
    """Security-specific configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="KEYGATE_",
        case_sensitive=False,
        extra="ignore",
    )

    admin_token: str | None = Field(
        default=None,
        description="Static bearer token for the admin endpoints (admin API disabled if unset)",
    )

    @field_validator("admin_token")
    @classmethod
    def blank_token_disables_admin(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v
