"""Consolidated exception hierarchy for Key Gate.

All exceptions use proper exception chaining with the `from` keyword.
Error types use StrEnum for type safety and autocompletion.
"""

from enum import StrEnum
from typing import Any

from starlette import status


class ErrorType(StrEnum):
    """Error type codes for API responses."""

    INVALID_REQUEST = "invalid_request_error"
    TASKS_NOT_COMPLETED = "tasks_not_completed_error"
    ALREADY_ISSUED = "already_issued_error"
    RATE_LIMIT = "rate_limit_error"
    INVALID_KEY = "invalid_key_error"
    EXPIRED = "expired_error"
    AUTHENTICATION = "authentication_error"
    STORE_UNAVAILABLE = "store_unavailable_error"
    INTERNAL_SERVER = "internal_server_error"


# ============================================================================
# Base Exceptions
# ============================================================================


class KeyGateError(Exception):
    """Base exception for all Key Gate errors.

    Carries the HTTP status code the API shell should answer with, plus
    optional structured details merged into the response body and extra
    response headers.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers or {}


# ============================================================================
# Request Errors (400)
# ============================================================================


class InvalidRequestError(KeyGateError):
    """Malformed or missing input (400)."""

    def __init__(self, message: str = "Missing required data") -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class TasksNotCompletedError(KeyGateError):
    """Task completion claim rejected (400)."""

    def __init__(self, message: str = "Tasks not completed or expired") -> None:
        super().__init__(
            message,
            error_type=ErrorType.TASKS_NOT_COMPLETED,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


# ============================================================================
# Throttling Errors (429)
# ============================================================================


class AlreadyIssuedError(KeyGateError):
    """Identity already holds a live key (429)."""

    def __init__(
        self, existing_key: str, expires_at_ms: int, validity_hours: int = 24
    ) -> None:
        super().__init__(
            "You have already generated a key. "
            f"Wait {validity_hours} hours before generating another.",
            error_type=ErrorType.ALREADY_ISSUED,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"existingKey": existing_key, "expiresAt": expires_at_ms},
        )
        self.existing_key = existing_key
        self.expires_at_ms = expires_at_ms


class RateLimitExceededError(KeyGateError):
    """Client address exceeded a shell rate limit (429)."""

    def __init__(
        self,
        message: str = "Too many requests. Please try again later.",
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            error_type=ErrorType.RATE_LIMIT,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers=headers,
        )


# ============================================================================
# Validation / Authentication Errors (401)
# ============================================================================


class InvalidKeyError(KeyGateError):
    """Presented key was never issued (401)."""

    def __init__(self, message: str = "Invalid key") -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_KEY,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class KeyExpiredError(KeyGateError):
    """Presented key is past its validity window (401)."""

    def __init__(self, message: str = "Key has expired") -> None:
        super().__init__(
            message,
            error_type=ErrorType.EXPIRED,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class UnauthorizedError(KeyGateError):
    """Admin bearer token missing or wrong (401)."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            message,
            error_type=ErrorType.AUTHENTICATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


# ============================================================================
# Storage Errors (500)
# ============================================================================


class StoreUnavailableError(KeyGateError):
    """Durable storage could not be read or written (500)."""

    def __init__(self, message: str = "Key store unavailable") -> None:
        super().__init__(
            message,
            error_type=ErrorType.STORE_UNAVAILABLE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class KeyGenerationError(KeyGateError):
    """No unique key could be drawn within the attempt budget (500)."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Could not generate a unique key after {attempts} attempts",
            error_type=ErrorType.INTERNAL_SERVER,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.attempts = attempts


__all__ = [
    "ErrorType",
    "KeyGateError",
    "InvalidRequestError",
    "TasksNotCompletedError",
    "AlreadyIssuedError",
    "RateLimitExceededError",
    "InvalidKeyError",
    "KeyExpiredError",
    "UnauthorizedError",
    "StoreUnavailableError",
    "KeyGenerationError",
]
