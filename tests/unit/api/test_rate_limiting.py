# tests/unit/api/test_rate_limiting.py
"""Tests for per-address fixed-window rate limits."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from key_gate.api.app import create_app
from key_gate.api.rate_limit import FixedWindowRateLimiter, build_rate_limiters
from key_gate.config.rate_limit import RateLimitSettings
from key_gate.config.settings import Settings


@pytest.mark.unit
class TestFixedWindowRateLimiter:
    @pytest.fixture
    def limiter(self, clock) -> FixedWindowRateLimiter:
        return FixedWindowRateLimiter(
            limit=2, window_seconds=60, message="slow down", clock=clock
        )

    def test_allows_up_to_limit(self, limiter, clock) -> None:
        first = limiter.hit("a")
        second = limiter.hit("a")
        third = limiter.hit("a")

        assert first.allowed and second.allowed
        assert not third.allowed
        assert third.remaining == 0
        assert third.headers(clock())["Retry-After"] == "60"

    def test_counts_per_key(self, limiter) -> None:
        limiter.hit("a")
        limiter.hit("a")

        assert limiter.hit("b").allowed

    def test_window_resets(self, limiter, clock) -> None:
        limiter.hit("a")
        limiter.hit("a")
        clock.advance(seconds=30)
        assert not limiter.hit("a").allowed

        clock.advance(seconds=30)
        decision = limiter.hit("a")

        assert decision.allowed
        assert decision.remaining == 1

    def test_headers_when_allowed(self, limiter, clock) -> None:
        decision = limiter.hit("a")
        clock.advance(seconds=10)

        assert decision.headers(clock()) == {
            "RateLimit-Limit": "2",
            "RateLimit-Remaining": "1",
            "RateLimit-Reset": "50",
        }

    def test_reset(self, limiter) -> None:
        limiter.hit("a")
        limiter.hit("a")

        limiter.reset("a")

        assert limiter.hit("a").allowed

    def test_disabled_builds_no_limiters(self) -> None:
        assert build_rate_limiters(RateLimitSettings(enabled=False)) == {}


@pytest.mark.unit
class TestRateLimitedRoutes:
    def test_second_generation_from_same_address_is_limited(
        self, client: TestClient, claim_body
    ) -> None:
        """The generation limit applies even to a different fingerprint."""
        headers = {"X-Forwarded-For": "198.51.100.7"}
        client.post("/api/generate-key", json=claim_body("fp-1"), headers=headers)

        response = client.post(
            "/api/generate-key", json=claim_body("fp-2"), headers=headers
        )

        assert response.status_code == 429
        body = response.json()
        assert body["errorType"] == "rate_limit_error"
        assert body["error"] == (
            "Key generation limit reached. You can only generate 1 key per 24 hours."
        )
        assert response.headers["Retry-After"] == str(24 * 3600)

    def test_rejected_requests_count(self, client: TestClient) -> None:
        """A failed generation still uses up the address's allowance."""
        headers = {"X-Forwarded-For": "198.51.100.8"}
        client.post("/api/generate-key", json={}, headers=headers)

        response = client.post("/api/generate-key", json={}, headers=headers)

        assert response.status_code == 429

    def test_validation_limit(self, client: TestClient) -> None:
        headers = {"X-Forwarded-For": "198.51.100.9"}
        payload = {"key": "FREE_NOPE", "userFingerprint": "fp"}

        statuses = [
            client.post("/api/validate-key", json=payload, headers=headers).status_code
            for _ in range(51)
        ]

        assert statuses[:50] == [401] * 50
        assert statuses[50] == 429

    def test_disabled_rate_limits(self, db_path: Path, clock, claim_body) -> None:
        settings = Settings(
            server={"trust_forwarded_for": True},
            storage={"database_file": db_path},
            scheduler={"sweep_enabled": False},
            rate_limit={"enabled": False},
        )
        headers = {"X-Forwarded-For": "198.51.100.10"}

        with TestClient(create_app(settings, clock=clock)) as client:
            client.post("/api/generate-key", json=claim_body("fp-1"), headers=headers)
            response = client.post(
                "/api/generate-key", json=claim_body("fp-2"), headers=headers
            )

        # Reaches the one-live-key rule instead of the shell limit
        assert response.status_code == 429
        assert response.json()["errorType"] == "already_issued_error"
        assert "RateLimit-Limit" not in response.headers
