"""API middleware for the Key Gate server."""

from key_gate.api.middleware.cors import setup_cors_middleware
from key_gate.api.middleware.errors import setup_error_handlers
from key_gate.api.middleware.logging import AccessLogMiddleware
from key_gate.api.middleware.request_id import RequestIDMiddleware


__all__ = [
    "AccessLogMiddleware",
    "RequestIDMiddleware",
    "setup_cors_middleware",
    "setup_error_handlers",
]
