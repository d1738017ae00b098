"""Key lifecycle service - facade for issuing and validating keys."""

from datetime import timedelta

from structlog import get_logger

from key_gate.config.keys import KeyLifecycleSettings
from key_gate.core.clock import Clock, to_epoch_ms, utc_now
from key_gate.exceptions import (
    AlreadyIssuedError,
    InvalidKeyError,
    InvalidRequestError,
    KeyExpiredError,
    KeyGenerationError,
    TasksNotCompletedError,
)
from key_gate.keys.eligibility import EligibilityGuard
from key_gate.keys.generator import KeyGenerator
from key_gate.keys.models import (
    Identity,
    IssuedKey,
    KeyRecord,
    TaskClaim,
    TimeRemaining,
    ValidationResult,
)
from key_gate.keys.storage import KeyRecordStore


logger = get_logger(__name__)


def mask_key(key: str, visible: int = 10) -> str:
    """Shorten a key for logs and listings."""
    return key[:visible] + "..."


class KeyLifecycleService:
    """Facade for key issuance and validation."""

    def __init__(
        self,
        store: KeyRecordStore,
        generator: KeyGenerator,
        guard: EligibilityGuard,
        validity: timedelta,
        clock: Clock = utc_now,
        max_generation_attempts: int = 5,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            store: Transactional key record store
            generator: Source of new key strings
            guard: Eligibility rules for issuance
            validity: How long a key stays valid after issuance
            clock: Source of the current instant
            max_generation_attempts: Collision retries before giving up

        """
        self.store = store
        self.generator = generator
        self.guard = guard
        self.validity = validity
        self.clock = clock
        self.max_generation_attempts = max_generation_attempts

    @property
    def validity_hours(self) -> int:
        return round(self.validity.total_seconds() / 3600)

    @classmethod
    def from_settings(
        cls,
        store: KeyRecordStore,
        settings: KeyLifecycleSettings,
        clock: Clock = utc_now,
    ) -> "KeyLifecycleService":
        """Build a service wired with the configured generator and guard."""
        return cls(
            store=store,
            generator=KeyGenerator(
                prefix=settings.key_prefix,
                segments=settings.key_segments,
                segment_bytes=settings.segment_bytes,
            ),
            guard=EligibilityGuard(
                required_tasks=settings.required_tasks,
                recency_window=settings.task_recency,
                validity=settings.validity,
                clock_skew=settings.claim_clock_skew,
            ),
            validity=settings.validity,
            clock=clock,
            max_generation_attempts=settings.max_generation_attempts,
        )

    async def issue_key(
        self, claim: TaskClaim | None, identity: Identity | None
    ) -> IssuedKey:
        """Issue a new key to an eligible identity.

        Args:
            claim: Task completion claim
            identity: Requesting address and fingerprint

        Returns:
            The new key and its expiry

        Raises:
            InvalidRequestError: If claim or identity is missing
            TasksNotCompletedError: If the claim is rejected
            AlreadyIssuedError: If the identity already holds a live key
            KeyGenerationError: If no unique key could be drawn
            StoreUnavailableError: If the new record cannot be persisted

        """
        if claim is None or identity is None or not identity.fingerprint:
            raise InvalidRequestError()

        now = self.clock()
        if not self.guard.check_task_completion(claim, now):
            logger.info("key_claim_rejected", ip=identity.ip)
            raise TasksNotCompletedError()

        async with self.store.transaction() as db:
            conflict = self.guard.check_identity_freshness(db, identity, now)
            if conflict is not None:
                logger.info(
                    "key_already_issued",
                    ip=identity.ip,
                    existing_key=mask_key(conflict.existing_key),
                )
                raise AlreadyIssuedError(
                    existing_key=conflict.existing_key,
                    expires_at_ms=to_epoch_ms(conflict.expires_at),
                    validity_hours=self.validity_hours,
                )

            key = self._draw_unique_key(db.keys)
            db.keys[key] = KeyRecord(
                key=key,
                generated_at=now,
                ip=identity.ip,
                fingerprint=identity.fingerprint,
                used=False,
                usage_count=0,
                last_used=None,
            )

        logger.info("key_issued", key=mask_key(key), ip=identity.ip)
        return IssuedKey(key=key, expires_at=now + self.validity)

    def _draw_unique_key(self, existing: dict[str, KeyRecord]) -> str:
        for attempt in range(1, self.max_generation_attempts + 1):
            key = self.generator.generate()
            if key not in existing:
                return key
            logger.warning("key_generation_collision", attempt=attempt)
        raise KeyGenerationError(self.max_generation_attempts)

    async def validate_key(
        self, key: str | None, identity: Identity | None
    ) -> ValidationResult:
        """Validate a presented key and record the usage.

        Args:
            key: Key string presented by the client
            identity: Presenting address and fingerprint

        Returns:
            Usage count, expiry and remaining validity

        Raises:
            InvalidRequestError: If key or identity is missing
            InvalidKeyError: If the key was never issued
            KeyExpiredError: If the key is past its validity (it is removed)
            StoreUnavailableError: If the update cannot be persisted

        """
        if not key or identity is None or not identity.fingerprint:
            raise InvalidRequestError("Missing key or user fingerprint")

        now = self.clock()
        expired = False
        async with self.store.transaction() as db:
            record = db.keys.get(key)
            if record is None:
                logger.info("key_validation_unknown", key=mask_key(key), ip=identity.ip)
                raise InvalidKeyError()

            if record.is_expired(now, self.validity):
                del db.keys[key]
                expired = True
            else:
                record.used = True
                record.usage_count += 1
                record.last_used = now
                usage_count = record.usage_count
                expires_at = record.expires_at(self.validity)

        if expired:
            logger.info("key_expired", key=mask_key(key))
            raise KeyExpiredError()

        logger.info("key_validated", key=mask_key(key), usage_count=usage_count)
        return ValidationResult(
            key=key,
            usage_count=usage_count,
            expires_at=expires_at,
            time_remaining=TimeRemaining.from_timedelta(expires_at - now),
        )

    async def list_keys(self) -> list[KeyRecord]:
        """List every stored record, expired ones included."""
        snapshot = await self.store.snapshot()
        return list(snapshot.keys.values())

    def is_expired(self, record: KeyRecord) -> bool:
        return record.is_expired(self.clock(), self.validity)
