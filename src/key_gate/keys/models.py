"""Pydantic models for the key lifecycle engine."""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from key_gate.core.clock import from_epoch_ms


DATABASE_FORMAT_VERSION = 1


def _coerce_instant(value: Any) -> Any:
    """Accept legacy epoch-millisecond integers alongside ISO strings."""
    if isinstance(value, int | float) and not isinstance(value, bool):
        return from_epoch_ms(value)
    return value


class Identity(BaseModel):
    """The (source address, client fingerprint) pair behind a request."""

    model_config = ConfigDict(frozen=True)

    ip: str
    fingerprint: str

    def matches(self, other: "Identity") -> bool:
        """True when either the address or the fingerprint is shared.

        A shared NAT address alone is therefore enough to block a second key.
        """
        return self.ip == other.ip or self.fingerprint == other.fingerprint


class KeyRecord(BaseModel):
    """One issued key and its usage history."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., min_length=1, description="Opaque key string")
    generated_at: datetime = Field(
        ...,
        alias="generatedAt",
        description="Issuance instant, source of truth for expiry",
    )
    ip: str = Field(..., description="Address that requested the key")
    fingerprint: str = Field(..., description="Client fingerprint that requested the key")
    used: bool = Field(default=False, description="Validated at least once")
    usage_count: int = Field(
        default=0,
        ge=0,
        alias="usageCount",
        description="Successful validations so far",
    )
    last_used: datetime | None = Field(
        default=None,
        alias="lastUsed",
        description="Most recent successful validation",
    )

    @field_validator("generated_at", "last_used", mode="before")
    @classmethod
    def accept_epoch_ms(cls, v: Any) -> Any:
        return _coerce_instant(v)

    @field_validator("generated_at", "last_used", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def identity(self) -> Identity:
        return Identity(ip=self.ip, fingerprint=self.fingerprint)

    def expires_at(self, validity: timedelta) -> datetime:
        return self.generated_at + validity

    def is_expired(self, now: datetime, validity: timedelta) -> bool:
        """A record is expired once its age reaches the validity window."""
        return now - self.generated_at >= validity


class KeyDatabase(BaseModel):
    """The persisted aggregate: every key record, keyed by key string."""

    keys: dict[str, KeyRecord] = Field(default_factory=dict)
    version: int = Field(default=DATABASE_FORMAT_VERSION)

    @model_validator(mode="before")
    @classmethod
    def fill_record_keys(cls, data: Any) -> Any:
        """Older files store records without their own key field."""
        if not isinstance(data, dict) or not isinstance(data.get("keys"), dict):
            return data
        keys = {
            name: {**record, "key": record.get("key", name)}
            if isinstance(record, dict)
            else record
            for name, record in data["keys"].items()
        }
        return {**data, "keys": keys}

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskClaim(BaseModel):
    """Client-reported completion of the off-platform tasks.

    Task flags arrive as arbitrary extra fields (``task1Completed``,
    ``task2Completed``, ...); which ones are required is configuration.
    """

    model_config = ConfigDict(extra="allow")

    timestamp: int | float | None = Field(
        default=None,
        description="Claimed completion instant in epoch milliseconds",
    )

    def flag(self, name: str) -> bool:
        """Whether the named task flag is the boolean ``true``."""
        extra = self.model_extra or {}
        return extra.get(name) is True


class IssuedKey(BaseModel):
    """Result of a successful issuance."""

    key: str
    expires_at: datetime


class TimeRemaining(BaseModel):
    """Validity left on a key, split for display."""

    hours: int = Field(ge=0)
    minutes: int = Field(ge=0, lt=60)

    @classmethod
    def from_timedelta(cls, remaining: timedelta) -> "TimeRemaining":
        total_seconds = max(0, int(remaining.total_seconds()))
        return cls(hours=total_seconds // 3600, minutes=(total_seconds % 3600) // 60)


class ValidationResult(BaseModel):
    """Result of a successful validation."""

    key: str
    usage_count: int
    expires_at: datetime
    time_remaining: TimeRemaining


class KeyConflict(BaseModel):
    """A live key already held by an overlapping identity."""

    existing_key: str
    expires_at: datetime
