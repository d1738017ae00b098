"""FastAPI application factory for the Key Gate server."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from structlog import get_logger

from key_gate import __version__
from key_gate.api.lifecycle import (
    LifecycleComponent,
    execute_shutdown_sequence,
    execute_startup_sequence,
    log_server_start,
)
from key_gate.api.middleware import (
    AccessLogMiddleware,
    RequestIDMiddleware,
    setup_cors_middleware,
    setup_error_handlers,
)
from key_gate.api.routes import admin_router, health_router, keys_router
from key_gate.api.startup import (
    initialize_expiry_sweeper_startup,
    initialize_key_store_startup,
    initialize_rate_limiters_startup,
    shutdown_expiry_sweeper,
)
from key_gate.config.settings import Settings, get_settings
from key_gate.core.clock import Clock, utc_now
from key_gate.core.logging import setup_logging


logger = get_logger(__name__)


LIFECYCLE_COMPONENTS: list[LifecycleComponent] = [
    {
        "name": "Key Store",
        "startup": initialize_key_store_startup,
        "shutdown": None,  # Every mutation is already on disk
    },
    {
        "name": "Rate Limiters",
        "startup": initialize_rate_limiters_startup,
        "shutdown": None,
    },
    {
        "name": "Expiry Sweeper",
        "startup": initialize_expiry_sweeper_startup,
        "shutdown": shutdown_expiry_sweeper,
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager using component-based approach."""
    settings: Settings = app.state.settings

    log_server_start(settings)
    await execute_startup_sequence(LIFECYCLE_COMPONENTS, app, settings)

    yield

    logger.debug("server_stop")
    await execute_shutdown_sequence(LIFECYCLE_COMPONENTS, app)


def create_app(settings: Settings | None = None, clock: Clock = utc_now) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        clock: Source of the current instant for every time-based rule.

    Returns:
        Configured FastAPI application instance.

    """
    if settings is None:
        settings = get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.json_logs,
            log_level_name=settings.server.log_level,
            log_file=settings.server.log_file,
        )

    app = FastAPI(
        title="Key Gate API Server",
        description="Issues short-lived access keys after task completion and validates them",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock

    setup_error_handlers(app)

    # Last added runs first: CORS, then request id, then access logging
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors_middleware(app, settings)

    app.include_router(health_router)
    app.include_router(keys_router, prefix="/api")
    app.include_router(admin_router, prefix="/api/admin")

    return app


def get_app() -> FastAPI:
    """Get the FastAPI application instance (uvicorn factory entry point)."""
    return create_app()
