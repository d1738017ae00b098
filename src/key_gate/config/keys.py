"""Key lifecycle settings: validity, claim recency and key format."""

from datetime import timedelta

from pydantic import BaseModel, Field, model_validator

from key_gate.core.validators import parse_comma_separated


MIN_KEY_ENTROPY_BITS = 96


class KeyLifecycleSettings(BaseModel):
    """Tunables for issuing, validating and expiring keys."""

    validity_hours: float = Field(
        default=24,
        gt=0,
        description="Hours a key stays valid after issuance",
    )

    task_recency_minutes: float = Field(
        default=30,
        gt=0,
        description="Maximum age of a task completion claim",
    )

    claim_clock_skew_seconds: float = Field(
        default=60,
        ge=0,
        description="How far in the future a claim timestamp may lie",
    )

    required_tasks: list[str] = Field(
        default_factory=lambda: ["task1Completed", "task2Completed"],
        min_length=1,
        description="Claim flags that must all be true",
    )

    key_prefix: str = Field(
        default="FREE",
        min_length=1,
        pattern=r"^[A-Z0-9]+$",
        description="Tag identifying the key class",
    )

    key_segments: int = Field(default=4, ge=1, le=16)

    segment_bytes: int = Field(default=3, ge=1, le=16)

    max_generation_attempts: int = Field(
        default=5,
        ge=1,
        description="Collision retries before giving up",
    )

    @model_validator(mode="before")
    @classmethod
    def split_required_tasks(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("required_tasks"), str):
            data = {**data, "required_tasks": parse_comma_separated(data["required_tasks"])}
        return data

    @model_validator(mode="after")
    def check_entropy(self) -> "KeyLifecycleSettings":
        bits = self.key_segments * self.segment_bytes * 8
        if bits < MIN_KEY_ENTROPY_BITS:
            raise ValueError(
                f"Key format yields {bits} random bits, "
                f"at least {MIN_KEY_ENTROPY_BITS} are required"
            )
        return self

    @property
    def validity(self) -> timedelta:
        return timedelta(hours=self.validity_hours)

    @property
    def task_recency(self) -> timedelta:
        return timedelta(minutes=self.task_recency_minutes)

    @property
    def claim_clock_skew(self) -> timedelta:
        return timedelta(seconds=self.claim_clock_skew_seconds)
