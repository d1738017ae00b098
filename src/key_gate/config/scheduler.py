"""Scheduler configuration settings."""

from pydantic import BaseModel, Field


class SchedulerSettings(BaseModel):
    """Controls the background expiry sweep."""

    sweep_enabled: bool = Field(
        default=True,
        description="Whether the periodic expiry sweep runs",
    )

    sweep_interval_seconds: int = Field(
        default=60 * 60,
        ge=1,
        description="Seconds between expiry sweeps",
    )
