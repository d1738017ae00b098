"""Shared route dependencies."""

from fastapi import Request, Response

from key_gate.api.client import require_client_ip
from key_gate.exceptions import StoreUnavailableError
from key_gate.keys import Identity, KeyLifecycleService


def get_key_service(request: Request) -> KeyLifecycleService:
    """Get the lifecycle service created at startup.

    Raises:
        StoreUnavailableError: If startup did not manage to build it
    """
    service: KeyLifecycleService | None = getattr(
        request.app.state, "key_service", None
    )
    if service is None:
        raise StoreUnavailableError("Key service is not initialized")
    return service


def build_identity(request: Request, fingerprint: str | None) -> Identity | None:
    """Pair the client address with the client-supplied fingerprint."""
    if not fingerprint:
        return None
    return Identity(ip=require_client_ip(request), fingerprint=fingerprint)


def apply_rate_limit_headers(request: Request, response: Response) -> None:
    """Copy headers computed by the rate limit dependency onto a response."""
    headers: dict[str, str] = getattr(request.state, "rate_limit_headers", {})
    response.headers.update(headers)
