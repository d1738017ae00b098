"""Access logging middleware."""

import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from key_gate.api.client import get_client_ip


logger = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One ``request_complete`` line per request with status, timing and client."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": get_client_ip(request),
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_error",
                duration_ms=_elapsed_ms(started),
                error_message=str(e),
                **fields,
            )
            raise

        logger.info(
            "request_complete",
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
            **fields,
        )
        return response
