"""Startup and shutdown helpers for the key lifecycle components."""

from fastapi import FastAPI
from structlog import get_logger

from key_gate.api.rate_limit import build_rate_limiters
from key_gate.config.settings import Settings
from key_gate.core.clock import utc_now
from key_gate.keys import ExpirySweeper, KeyLifecycleService, KeyRecordStore


logger = get_logger(__name__)


async def initialize_key_store_startup(app: FastAPI, settings: Settings) -> None:
    """Open the key database and build the lifecycle service on it.

    Args:
        app: FastAPI application
        settings: Application settings
    """
    clock = getattr(app.state, "clock", utc_now)
    store = KeyRecordStore(settings.storage.database_file)
    store.initialize()

    app.state.key_store = store
    app.state.key_service = KeyLifecycleService.from_settings(
        store, settings.keys, clock=clock
    )
    logger.info(
        "key_service_ready",
        path=str(settings.storage.database_file),
        keys=len(store),
        validity_hours=settings.keys.validity_hours,
    )


async def initialize_rate_limiters_startup(app: FastAPI, settings: Settings) -> None:
    clock = getattr(app.state, "clock", utc_now)
    app.state.rate_limiters = build_rate_limiters(settings.rate_limit, clock=clock)
    if not app.state.rate_limiters:
        logger.info("rate_limiting_disabled")


async def initialize_expiry_sweeper_startup(app: FastAPI, settings: Settings) -> None:
    """Start the periodic sweep if enabled and the store is available.

    Args:
        app: FastAPI application
        settings: Application settings
    """
    app.state.expiry_sweeper = None
    store = getattr(app.state, "key_store", None)
    if not settings.scheduler.sweep_enabled:
        logger.info("expiry_sweeper_disabled")
        return
    if store is None:
        logger.warning("expiry_sweeper_skipped", reason="key store not initialized")
        return

    sweeper = ExpirySweeper(
        store,
        validity=settings.keys.validity,
        interval_seconds=settings.scheduler.sweep_interval_seconds,
        clock=getattr(app.state, "clock", utc_now),
    )
    await sweeper.start()
    app.state.expiry_sweeper = sweeper


async def shutdown_expiry_sweeper(app: FastAPI) -> None:
    sweeper: ExpirySweeper | None = getattr(app.state, "expiry_sweeper", None)
    if sweeper is not None:
        await sweeper.stop()
