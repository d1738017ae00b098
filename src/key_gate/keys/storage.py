"""JSON file storage for key records."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import orjson
from pydantic import ValidationError
from structlog import get_logger

from key_gate.exceptions import StoreUnavailableError
from key_gate.keys.models import KeyDatabase


logger = get_logger(__name__)


class KeyRecordStore:
    """Single-owner key database with write-through JSON persistence.

    The in-memory copy is authoritative for this process. Every mutation
    goes through :meth:`transaction`, which holds one process-wide lock for
    the whole load-decide-save sequence and only swaps in the new state
    after it reached disk.
    """

    def __init__(self, file_path: Path) -> None:
        """Initialize storage with file path.

        Args:
            file_path: Path to the JSON file holding the key database

        """
        self.file_path = file_path
        self._db = KeyDatabase()
        self._lock = asyncio.Lock()

    @property
    def _temp_path(self) -> Path:
        return self.file_path.with_name(self.file_path.name + ".tmp")

    def load(self) -> KeyDatabase:
        """Read the database from disk.

        Returns:
            The stored database, or an empty one if the file does not exist

        Raises:
            StoreUnavailableError: If the file cannot be read or decoded

        """
        if not self.file_path.exists():
            return KeyDatabase()

        try:
            data = orjson.loads(self.file_path.read_bytes())
            return KeyDatabase.model_validate(data)
        except OSError as e:
            logger.exception("key_store_file_read_error", path=str(self.file_path))
            raise StoreUnavailableError(f"Cannot read key store: {e}") from e
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.exception("key_store_decode_error", path=str(self.file_path))
            raise StoreUnavailableError(f"Key store is corrupt: {e}") from e

    def save(self, db: KeyDatabase) -> None:
        """Durably overwrite the stored database.

        Writes to a temp file first, then renames it over the target so a
        reader never sees a half-written file.

        Args:
            db: Database to persist

        Raises:
            StoreUnavailableError: If the file cannot be written

        """
        temp_path = self._temp_path
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(
                orjson.dumps(db.to_storage(), option=orjson.OPT_INDENT_2)
            )
            temp_path.replace(self.file_path)
        except OSError as e:
            logger.error(
                "key_store_save_failed", path=str(self.file_path), error=str(e)
            )
            temp_path.unlink(missing_ok=True)
            raise StoreUnavailableError(f"Cannot write key store: {e}") from e

    def initialize(self) -> None:
        """Load state at startup, recovering to an empty database.

        A missing file is created. An unreadable or corrupt file is moved
        aside (when possible) and replaced, so the service can still start.
        """
        if not self.file_path.exists():
            self._db = KeyDatabase()
            try:
                self.save(self._db)
                logger.info("key_store_created", path=str(self.file_path))
            except StoreUnavailableError:
                logger.error("key_store_create_failed", path=str(self.file_path))
            return

        try:
            self._db = self.load()
        except StoreUnavailableError as e:
            self._db = KeyDatabase()
            self._quarantine_corrupt_file()
            logger.error(
                "key_store_reset_to_empty",
                path=str(self.file_path),
                error=str(e),
            )
            return

        logger.info(
            "key_store_loaded", path=str(self.file_path), keys=len(self._db.keys)
        )

    def _quarantine_corrupt_file(self) -> None:
        backup = self.file_path.with_name(self.file_path.name + ".corrupt")
        try:
            self.file_path.replace(backup)
            logger.warning("key_store_quarantined", backup=str(backup))
        except OSError as e:
            logger.error("key_store_quarantine_failed", error=str(e))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[KeyDatabase]:
        """Run a read-modify-write sequence under the store lock.

        Yields a private working copy. If the block exits normally and the
        copy differs from the current state, it is persisted and becomes the
        current state. An exception inside the block commits nothing.
        Cancelling the caller while the save runs still completes the swap
        before the lock is released, so disk and memory never diverge.

        Raises:
            StoreUnavailableError: If persisting the new state fails

        """
        async with self._lock:
            working = self._db.model_copy(deep=True)
            yield working
            if working != self._db:
                commit = asyncio.ensure_future(self._commit(working))
                try:
                    await asyncio.shield(commit)
                except asyncio.CancelledError:
                    # The save thread cannot be stopped; wait for its outcome
                    while not commit.done():
                        with contextlib.suppress(asyncio.CancelledError):
                            await asyncio.wait({commit})
                    logger.warning(
                        "key_store_commit_cancelled",
                        persisted=commit.exception() is None,
                    )
                    raise

    async def _commit(self, working: KeyDatabase) -> None:
        await asyncio.to_thread(self.save, working)
        self._db = working

    async def snapshot(self) -> KeyDatabase:
        """Return a consistent copy of the current state for read-only use."""
        async with self._lock:
            return self._db.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._db.keys)
