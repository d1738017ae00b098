"""Periodic removal of expired key records."""

from datetime import timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from key_gate.core.clock import Clock, utc_now
from key_gate.exceptions import KeyGateError
from key_gate.keys.storage import KeyRecordStore


logger = get_logger(__name__)

SWEEP_INTERVAL_SECONDS = 60 * 60


class ExpirySweeper:
    """Background compaction of the key store.

    Validation already deletes an expired key when it is presented; the
    sweep catches the ones that are never presented again.
    """

    def __init__(
        self,
        store: KeyRecordStore,
        validity: timedelta,
        interval_seconds: int = SWEEP_INTERVAL_SECONDS,
        clock: Clock = utc_now,
    ):
        """Initialize the sweeper.

        Args:
            store: Store to compact
            validity: Records at least this old are removed
            interval_seconds: Seconds between sweeps
            clock: Source of the current instant
        """
        self.store = store
        self.validity = validity
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._scheduler: Any = None  # AsyncIOScheduler from apscheduler
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def sweep(self) -> int:
        """Drop every record whose age reached the validity window.

        Returns:
            Number of records removed
        """
        now = self.clock()
        async with self.store.transaction() as db:
            expired = [
                key
                for key, record in db.keys.items()
                if record.is_expired(now, self.validity)
            ]
            for key in expired:
                del db.keys[key]

        if expired:
            logger.info("keys_swept", removed=len(expired), remaining=len(self.store))
        else:
            logger.debug("keys_sweep_noop", remaining=len(self.store))
        return len(expired)

    async def _run_sweep(self) -> None:
        """Scheduler entry point; a failed tick never stops the schedule."""
        try:
            await self.sweep()
        except KeyGateError as e:
            logger.error("keys_sweep_failed", error=str(e), error_type=type(e).__name__)

    async def start(self) -> None:
        """Start the periodic sweep."""
        if self._running:
            logger.warning("expiry_sweeper_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run_sweep,
            "interval",
            seconds=self.interval_seconds,
            id="expiry_sweep",
            name="Expired Key Sweep",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._running = True

        logger.info("expiry_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("expiry_sweeper_stopped")
