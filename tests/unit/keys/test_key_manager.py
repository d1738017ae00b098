# tests/unit/keys/test_key_manager.py
"""Tests for the key lifecycle service."""

import asyncio
import threading
import time
from datetime import timedelta
from pathlib import Path

import pytest

from key_gate.config.keys import KeyLifecycleSettings
from key_gate.core.clock import to_epoch_ms
from key_gate.exceptions import (
    AlreadyIssuedError,
    InvalidKeyError,
    InvalidRequestError,
    KeyExpiredError,
    KeyGenerationError,
    StoreUnavailableError,
    TasksNotCompletedError,
)
from key_gate.keys import (
    Identity,
    KeyDatabase,
    KeyLifecycleService,
    KeyRecordStore,
    mask_key,
)


ALICE = Identity(ip="10.0.0.1", fingerprint="fp-alice")
BOB = Identity(ip="10.0.0.2", fingerprint="fp-bob")


class SequenceGenerator:
    """Generator stub returning a fixed sequence of keys."""

    def __init__(self, *keys: str) -> None:
        self.keys = list(keys)

    def generate(self) -> str:
        return self.keys.pop(0)


@pytest.mark.unit
class TestIssueKey:
    """Key issuance."""

    @pytest.mark.asyncio
    async def test_issues_key_for_eligible_identity(
        self, service: KeyLifecycleService, make_claim, clock, db_path: Path
    ) -> None:
        issued = await service.issue_key(make_claim(), ALICE)

        assert service.generator.pattern.match(issued.key)
        assert issued.expires_at == clock() + timedelta(hours=24)

        stored = KeyRecordStore(db_path).load().keys[issued.key]
        assert stored.ip == ALICE.ip
        assert stored.fingerprint == ALICE.fingerprint
        assert stored.used is False
        assert stored.usage_count == 0
        assert stored.last_used is None
        assert stored.generated_at == clock()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("claim_given", "identity"),
        [
            (False, ALICE),
            (True, None),
            (True, Identity(ip="10.0.0.1", fingerprint="")),
        ],
    )
    async def test_missing_input_is_invalid_request(
        self, service, make_claim, claim_given, identity
    ) -> None:
        claim = make_claim() if claim_given else None

        with pytest.raises(InvalidRequestError):
            await service.issue_key(claim, identity)

        assert len(service.store) == 0

    @pytest.mark.asyncio
    async def test_stale_claim_is_rejected(self, service, make_claim) -> None:
        with pytest.raises(TasksNotCompletedError):
            await service.issue_key(make_claim(minutes_ago=31), ALICE)

        assert len(service.store) == 0

    @pytest.mark.asyncio
    async def test_second_request_returns_existing_key(
        self, service, make_claim, clock
    ) -> None:
        issued = await service.issue_key(make_claim(), ALICE)
        clock.advance(hours=1)

        with pytest.raises(AlreadyIssuedError) as exc_info:
            await service.issue_key(make_claim(), ALICE)

        assert exc_info.value.existing_key == issued.key
        assert exc_info.value.expires_at_ms == to_epoch_ms(issued.expires_at)
        assert exc_info.value.details["existingKey"] == issued.key
        assert len(service.store) == 1

    @pytest.mark.asyncio
    async def test_shared_address_blocks_other_fingerprint(
        self, service, make_claim
    ) -> None:
        await service.issue_key(make_claim(), ALICE)

        with pytest.raises(AlreadyIssuedError):
            await service.issue_key(
                make_claim(), Identity(ip=ALICE.ip, fingerprint="fp-other")
            )

    @pytest.mark.asyncio
    async def test_unrelated_identity_gets_own_key(self, service, make_claim) -> None:
        first = await service.issue_key(make_claim(), ALICE)
        second = await service.issue_key(make_claim(), BOB)

        assert first.key != second.key
        assert len(service.store) == 2

    @pytest.mark.asyncio
    async def test_new_key_after_previous_expired(
        self, service, make_claim, clock
    ) -> None:
        first = await service.issue_key(make_claim(), ALICE)
        clock.advance(hours=24)

        second = await service.issue_key(make_claim(), ALICE)

        assert second.key != first.key

    @pytest.mark.asyncio
    async def test_concurrent_requests_issue_one_key(
        self, service, make_claim
    ) -> None:
        """Same identity racing ten requests gets exactly one key."""
        results = await asyncio.gather(
            *(service.issue_key(make_claim(), ALICE) for _ in range(10)),
            return_exceptions=True,
        )

        issued = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, AlreadyIssuedError)]
        assert len(issued) == 1
        assert len(conflicts) == 9
        assert {c.existing_key for c in conflicts} == {issued[0].key}
        assert len(service.store) == 1

    @pytest.mark.asyncio
    async def test_collision_is_retried(self, service, make_claim) -> None:
        service.generator = SequenceGenerator("FREE_A", "FREE_B")
        await service.issue_key(make_claim(), ALICE)

        service.generator = SequenceGenerator("FREE_A", "FREE_A", "FREE_C")
        issued = await service.issue_key(make_claim(), BOB)

        assert issued.key == "FREE_C"

    @pytest.mark.asyncio
    async def test_exhausted_collisions_raise(self, service, make_claim) -> None:
        service.generator = SequenceGenerator("FREE_A")
        await service.issue_key(make_claim(), ALICE)

        service.generator = SequenceGenerator(*["FREE_A"] * 5)
        with pytest.raises(KeyGenerationError):
            await service.issue_key(make_claim(), BOB)

        assert len(service.store) == 1

    @pytest.mark.asyncio
    async def test_failed_persist_issues_nothing(
        self, service, make_claim, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_save(db: KeyDatabase) -> None:
            raise StoreUnavailableError("disk full")

        monkeypatch.setattr(service.store, "save", failing_save)

        with pytest.raises(StoreUnavailableError):
            await service.issue_key(make_claim(), ALICE)

        assert len(service.store) == 0


@pytest.mark.unit
class TestValidateKey:
    """Key validation and usage accounting."""

    @pytest.mark.asyncio
    async def test_validation_counts_usage(self, service, make_claim, clock) -> None:
        issued = await service.issue_key(make_claim(), ALICE)

        clock.advance(hours=1, minutes=30)
        first = await service.validate_key(issued.key, ALICE)
        clock.advance(minutes=1)
        second = await service.validate_key(issued.key, ALICE)

        assert first.usage_count == 1
        assert second.usage_count == 2
        assert second.expires_at == issued.expires_at
        assert second.time_remaining.hours == 22
        assert second.time_remaining.minutes == 29

        record = (await service.list_keys())[0]
        assert record.used is True
        assert record.last_used == clock()

    @pytest.mark.asyncio
    async def test_any_fingerprint_may_validate(self, service, make_claim) -> None:
        issued = await service.issue_key(make_claim(), ALICE)

        result = await service.validate_key(issued.key, BOB)

        assert result.usage_count == 1

    @pytest.mark.asyncio
    async def test_unknown_key_is_invalid(self, service) -> None:
        with pytest.raises(InvalidKeyError):
            await service.validate_key("FREE_NOPE", ALICE)

        assert len(service.store) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [None, ""])
    async def test_missing_key_is_invalid_request(self, service, key) -> None:
        with pytest.raises(InvalidRequestError):
            await service.validate_key(key, ALICE)

    @pytest.mark.asyncio
    async def test_missing_fingerprint_is_invalid_request(
        self, service, make_claim
    ) -> None:
        issued = await service.issue_key(make_claim(), ALICE)

        with pytest.raises(InvalidRequestError):
            await service.validate_key(issued.key, None)

    @pytest.mark.asyncio
    async def test_expired_key_is_removed(
        self, service, make_claim, clock, db_path: Path
    ) -> None:
        issued = await service.issue_key(make_claim(), ALICE)
        clock.advance(hours=24)

        with pytest.raises(KeyExpiredError):
            await service.validate_key(issued.key, ALICE)

        assert issued.key not in KeyRecordStore(db_path).load().keys
        with pytest.raises(InvalidKeyError):
            await service.validate_key(issued.key, ALICE)

    @pytest.mark.asyncio
    async def test_valid_until_last_instant(self, service, make_claim, clock) -> None:
        issued = await service.issue_key(make_claim(), ALICE)
        clock.advance(hours=23, minutes=59, seconds=59)

        result = await service.validate_key(issued.key, ALICE)

        assert result.time_remaining.hours == 0
        assert result.time_remaining.minutes == 0

    @pytest.mark.asyncio
    async def test_concurrent_validations_count_every_use(
        self, service, make_claim
    ) -> None:
        issued = await service.issue_key(make_claim(), ALICE)

        results = await asyncio.gather(
            *(service.validate_key(issued.key, ALICE) for _ in range(20))
        )

        assert sorted(r.usage_count for r in results) == list(range(1, 21))


@pytest.mark.unit
class TestServiceHelpers:
    def test_mask_key(self) -> None:
        assert mask_key("FREE_1A2B3C-4D5E6F") == "FREE_1A2B3..."

    def test_from_settings_uses_configured_format(
        self, store: KeyRecordStore, clock
    ) -> None:
        settings = KeyLifecycleSettings(
            validity_hours=2, key_prefix="PRO", key_segments=3, segment_bytes=4
        )

        service = KeyLifecycleService.from_settings(store, settings, clock=clock)

        assert service.validity == timedelta(hours=2)
        assert service.generator.generate().startswith("PRO_")
        assert service.guard.required_tasks == ["task1Completed", "task2Completed"]

    @pytest.mark.asyncio
    async def test_is_expired(self, service, make_claim, clock) -> None:
        await service.issue_key(make_claim(), ALICE)
        record = (await service.list_keys())[0]

        assert service.is_expired(record) is False
        clock.advance(hours=24)
        assert service.is_expired(record) is True


@pytest.mark.unit
class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_issue_is_not_lost(
        self, service, make_claim, db_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A client that goes away mid-save still blocks a second key."""
        save_started = threading.Event()
        real_save = service.store.save

        def slow_save(db: KeyDatabase) -> None:
            save_started.set()
            time.sleep(0.2)
            real_save(db)

        monkeypatch.setattr(service.store, "save", slow_save)

        task = asyncio.create_task(service.issue_key(make_claim(), ALICE))
        while not save_started.is_set():
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        monkeypatch.setattr(service.store, "save", real_save)
        on_disk = KeyRecordStore(db_path).load().keys
        assert len(on_disk) == len(service.store) == 1

        with pytest.raises(AlreadyIssuedError) as exc_info:
            await service.issue_key(make_claim(), ALICE)
        assert exc_info.value.existing_key in on_disk


@pytest.mark.unit
class TestConfiguredValidity:
    @pytest.mark.asyncio
    async def test_conflict_message_uses_configured_validity(
        self, store: KeyRecordStore, make_claim, clock
    ) -> None:
        service = KeyLifecycleService.from_settings(
            store, KeyLifecycleSettings(validity_hours=12), clock=clock
        )
        await service.issue_key(make_claim(), ALICE)

        with pytest.raises(AlreadyIssuedError) as exc_info:
            await service.issue_key(make_claim(), ALICE)

        assert "Wait 12 hours" in exc_info.value.message
