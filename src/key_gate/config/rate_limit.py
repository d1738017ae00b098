"""Per-address rate limit settings for the HTTP shell."""

from pydantic import BaseModel, Field


class RateLimitSettings(BaseModel):
    """Fixed-window limits applied before the lifecycle engine runs."""

    enabled: bool = Field(default=True, description="Apply rate limits")

    generate_limit: int = Field(
        default=1,
        ge=1,
        description="Key generation requests per address per window",
    )

    generate_window_seconds: int = Field(
        default=24 * 60 * 60,
        ge=1,
        description="Key generation window length",
    )

    validate_limit: int = Field(
        default=50,
        ge=1,
        description="Key validation requests per address per window",
    )

    validate_window_seconds: int = Field(
        default=15 * 60,
        ge=1,
        description="Key validation window length",
    )

    max_tracked_clients: int = Field(
        default=100_000,
        ge=1,
        description="Upper bound on addresses tracked per limiter",
    )
