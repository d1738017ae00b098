"""Client address resolution."""

from fastapi import Request

from key_gate.exceptions import InvalidRequestError


UNKNOWN_CLIENT = "unknown"


def get_client_ip(request: Request) -> str:
    """Get the client address used for identity and rate limiting.

    The socket peer address is used unless the server is configured to trust
    the first ``X-Forwarded-For`` entry set by a reverse proxy. Returns
    ``"unknown"`` when neither is available.
    """
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.server.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else UNKNOWN_CLIENT


def require_client_ip(request: Request) -> str:
    """Like :func:`get_client_ip`, but refuse requests without an address.

    Raises:
        InvalidRequestError: If the client address cannot be determined
    """
    client_ip = get_client_ip(request)
    if client_ip == UNKNOWN_CLIENT:
        raise InvalidRequestError("Cannot determine client address")
    return client_ip
