"""Eligibility rules checked before a key is issued."""

from datetime import datetime, timedelta

from key_gate.core.clock import from_epoch_ms
from key_gate.keys.models import Identity, KeyConflict, KeyDatabase, TaskClaim


class EligibilityGuard:
    """Task-claim recency and one-live-key-per-identity checks."""

    def __init__(
        self,
        required_tasks: list[str],
        recency_window: timedelta,
        validity: timedelta,
        clock_skew: timedelta = timedelta(0),
    ) -> None:
        self.required_tasks = list(required_tasks)
        self.recency_window = recency_window
        self.validity = validity
        self.clock_skew = clock_skew

    def check_task_completion(self, claim: TaskClaim, now: datetime) -> bool:
        """Accept a claim only if every task is done and the claim is recent.

        Args:
            claim: Client-reported task flags and completion timestamp
            now: Current instant

        Returns:
            True if the claim is accepted
        """
        if not claim.timestamp:
            return False

        try:
            claimed_at = from_epoch_ms(claim.timestamp)
        except (OverflowError, OSError, ValueError):
            return False

        age = now - claimed_at
        if age > self.recency_window or age < -self.clock_skew:
            return False

        return all(claim.flag(task) for task in self.required_tasks)

    def check_identity_freshness(
        self, db: KeyDatabase, identity: Identity, now: datetime
    ) -> KeyConflict | None:
        """Find a live key already held by an overlapping identity.

        Must run inside the same store transaction as the insert that
        follows it, otherwise two concurrent requests can both pass.

        Returns:
            The conflicting key and its expiry, or None if the identity is free
        """
        for record in db.keys.values():
            if record.is_expired(now, self.validity):
                continue
            if record.identity.matches(identity):
                return KeyConflict(
                    existing_key=record.key,
                    expires_at=record.expires_at(self.validity),
                )
        return None
