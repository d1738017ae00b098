"""Error handling for the Key Gate API.

Every error leaves the service as ``{"success": false, "error": ...}`` so the
widget can treat all endpoints uniformly.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from key_gate.api.client import get_client_ip
from key_gate.exceptions import ErrorType, KeyGateError


logger = get_logger(__name__)


def _build_error_response(
    status_code: int,
    error_type: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build standardized error response."""
    content: dict[str, Any] = {
        "success": False,
        "error": message,
        "errorType": error_type,
    }
    if details:
        content.update(details)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def setup_error_handlers(app: FastAPI) -> None:
    """Setup error handlers for the FastAPI application."""

    @app.exception_handler(KeyGateError)
    async def key_gate_error_handler(
        request: Request, exc: KeyGateError
    ) -> JSONResponse:
        """Handle all KeyGateError subclasses using their built-in attributes."""
        log_kwargs: dict[str, Any] = {
            "error_type": str(exc.error_type),
            "error_message": exc.message,
            "status_code": exc.status_code,
            "request_method": request.method,
            "request_url": str(request.url.path),
        }

        if exc.status_code >= 500:
            logger.error(type(exc).__name__, **log_kwargs)
        else:
            if exc.status_code in (401, 429):
                log_kwargs["client_ip"] = get_client_ip(request)
            logger.info(type(exc).__name__, **log_kwargs)

        # Storage details stay in the logs
        message = "Internal server error" if exc.status_code >= 500 else exc.message
        return _build_error_response(
            exc.status_code,
            str(exc.error_type),
            message,
            details=exc.details,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed JSON or wrongly typed fields are client errors (400)."""
        logger.info(
            "request_validation_failed",
            request_url=str(request.url.path),
            errors=len(exc.errors()),
        )
        return _build_error_response(
            status.HTTP_400_BAD_REQUEST,
            str(ErrorType.INVALID_REQUEST),
            "Missing required data",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle Starlette/FastAPI HTTP exceptions (404, 405, ...)."""
        log_kwargs = {
            "error_type": f"http_{exc.status_code}",
            "error_message": exc.detail,
            "status_code": exc.status_code,
            "request_method": request.method,
            "request_url": str(request.url.path),
        }

        if exc.status_code == 404:
            logger.debug("HTTP 404", **log_kwargs)
        else:
            logger.warning("HTTP exception", **log_kwargs)

        return _build_error_response(
            exc.status_code,
            "http_error",
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            error_type="unhandled_exception",
            error_message=str(exc),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_method=request.method,
            request_url=str(request.url.path),
            exc_info=True,
        )

        return _build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(ErrorType.INTERNAL_SERVER),
            "Internal server error",
        )
