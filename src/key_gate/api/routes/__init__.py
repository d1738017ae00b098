"""API routes for the Key Gate server."""

from key_gate.api.routes.admin import router as admin_router
from key_gate.api.routes.health import router as health_router
from key_gate.api.routes.keys import router as keys_router


__all__ = [
    "admin_router",
    "health_router",
    "keys_router",
]
