# tests/unit/api/conftest.py
"""Fixtures for exercising the HTTP API against a temporary key store."""

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from key_gate.api.app import create_app
from key_gate.config.settings import Settings


ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return Settings(
        server={"trust_forwarded_for": True},
        security={"admin_token": ADMIN_TOKEN},
        storage={"database_file": db_path},
        scheduler={"sweep_enabled": False},
    )


@pytest.fixture
def client(settings: Settings, clock) -> Iterator[TestClient]:
    """Test client with the lifespan running."""
    app = create_app(settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def claim_body(clock):
    """Build a generate-key request body."""

    def _make(fingerprint: str = "fp-a", minutes_ago: float = 1, **flags: object):
        tasks: dict[str, object] = {
            "task1Completed": True,
            "task2Completed": True,
            "timestamp": clock.epoch_ms(minutes=-minutes_ago),
        }
        tasks.update(flags)
        return {"tasksData": tasks, "userFingerprint": fingerprint}

    return _make
