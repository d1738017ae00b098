"""Fixed-window rate limiting keyed by client address."""

import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from cachetools import TTLCache
from fastapi import Request
from structlog import get_logger

from key_gate.api.client import require_client_ip
from key_gate.config.rate_limit import RateLimitSettings
from key_gate.core.clock import Clock, utc_now
from key_gate.exceptions import RateLimitExceededError


logger = get_logger(__name__)

GENERATE_LIMITER = "generate"
VALIDATE_LIMITER = "validate"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a limiter."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime

    def headers(self, now: datetime) -> dict[str, str]:
        reset_seconds = max(0, math.ceil((self.reset_at - now).total_seconds()))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(reset_seconds)
        return headers


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows starting at the first hit.

    Counters live in a TTL cache so idle addresses are forgotten once their
    window has passed and memory stays bounded.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        message: str,
        clock: Clock = utc_now,
        max_keys: int = 100_000,
    ) -> None:
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self.message = message
        self.clock = clock
        self._windows: TTLCache[str, tuple[datetime, int]] = TTLCache(
            maxsize=max_keys,
            ttl=window_seconds,
            timer=lambda: self.clock().timestamp(),
        )

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed.

        Every call counts, including ones rejected later by the handler.
        """
        now = self.clock()
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window:
            window_start, count = now, 0

        count += 1
        self._windows[key] = (window_start, count)

        return RateLimitDecision(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_at=window_start + self.window,
        )

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)


def build_rate_limiters(
    settings: RateLimitSettings, clock: Clock = utc_now
) -> dict[str, FixedWindowRateLimiter]:
    """Create the named limiters used by the key routes."""
    if not settings.enabled:
        return {}

    return {
        GENERATE_LIMITER: FixedWindowRateLimiter(
            limit=settings.generate_limit,
            window_seconds=settings.generate_window_seconds,
            message=(
                "Key generation limit reached. "
                "You can only generate 1 key per 24 hours."
            ),
            clock=clock,
            max_keys=settings.max_tracked_clients,
        ),
        VALIDATE_LIMITER: FixedWindowRateLimiter(
            limit=settings.validate_limit,
            window_seconds=settings.validate_window_seconds,
            message="Too many validation requests. Please try again later.",
            clock=clock,
            max_keys=settings.max_tracked_clients,
        ),
    }


def rate_limited(name: str) -> Callable[[Request], Awaitable[None]]:
    """FastAPI dependency enforcing the named limiter from app state.

    A missing limiter (rate limiting disabled) lets every request through.
    """

    async def dependency(request: Request) -> None:
        limiters: dict[str, FixedWindowRateLimiter] = getattr(
            request.app.state, "rate_limiters", {}
        )
        limiter = limiters.get(name)
        if limiter is None:
            return

        client_ip = require_client_ip(request)
        decision = limiter.hit(client_ip)
        headers = decision.headers(limiter.clock())
        request.state.rate_limit_headers = headers
        if not decision.allowed:
            logger.warning(
                "rate_limit_exceeded",
                limiter=name,
                client_ip=client_ip,
                limit=decision.limit,
            )
            raise RateLimitExceededError(limiter.message, headers=headers)

    return dependency
