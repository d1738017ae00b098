# tests/conftest.py
"""Shared fixtures: a controllable clock and ready-made key components."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from key_gate.core.clock import to_epoch_ms
from key_gate.keys import (
    EligibilityGuard,
    KeyGenerator,
    KeyLifecycleService,
    KeyRecordStore,
    TaskClaim,
)


VALIDITY = timedelta(hours=24)


class FakeClock:
    """Virtual clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def epoch_ms(self, **offset: float) -> int:
        """Epoch milliseconds of now shifted by ``offset``."""
        return to_epoch_ms(self.now + timedelta(**offset))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "keys_database.json"


@pytest.fixture
def store(db_path: Path) -> KeyRecordStore:
    """An initialized store on an empty temporary file."""
    key_store = KeyRecordStore(db_path)
    key_store.initialize()
    return key_store


@pytest.fixture
def service(store: KeyRecordStore, clock: FakeClock) -> KeyLifecycleService:
    return KeyLifecycleService(
        store=store,
        generator=KeyGenerator(),
        guard=EligibilityGuard(
            required_tasks=["task1Completed", "task2Completed"],
            recency_window=timedelta(minutes=30),
            validity=VALIDITY,
            clock_skew=timedelta(seconds=60),
        ),
        validity=VALIDITY,
        clock=clock,
    )


@pytest.fixture
def make_claim(clock: FakeClock):
    """Build a task claim completed ``minutes_ago`` minutes before now."""

    def _make(minutes_ago: float = 1, **flags: object) -> TaskClaim:
        data: dict[str, object] = {
            "task1Completed": True,
            "task2Completed": True,
            "timestamp": clock.epoch_ms(minutes=-minutes_ago),
        }
        data.update(flags)
        return TaskClaim.model_validate(data)

    return _make

