"""Admin view over the key store."""

import secrets
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from structlog import get_logger

from key_gate.api.client import get_client_ip
from key_gate.api.routes.dependencies import get_key_service
from key_gate.exceptions import UnauthorizedError
from key_gate.keys import KeyLifecycleService, mask_key


logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


class AdminKeyEntry(BaseModel):
    """One key as shown to operators; the key itself is truncated."""

    key: str
    generated_at: datetime = Field(serialization_alias="generatedAt")
    expired: bool
    used: bool
    usage_count: int = Field(serialization_alias="usageCount")
    last_used: datetime | None = Field(serialization_alias="lastUsed")


class AdminKeysResponse(BaseModel):
    success: bool = True
    total_keys: int = Field(serialization_alias="totalKeys")
    keys: list[AdminKeyEntry]


def _extract_bearer_token(request: Request) -> str | None:
    """Extract bearer token from Authorization header."""
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def require_admin(request: Request) -> None:
    """Reject requests without the configured static admin token.

    With no token configured the admin API stays closed.

    Raises:
        UnauthorizedError: If the token is missing, wrong or unconfigured
    """
    expected = request.app.state.settings.security.admin_token
    token = _extract_bearer_token(request)
    if not expected or not token or not secrets.compare_digest(
        token.encode(), expected.encode()
    ):
        logger.warning(
            "admin_auth_failed",
            client_ip=get_client_ip(request),
            token_present=token is not None,
        )
        raise UnauthorizedError()


@router.get(
    "/keys",
    response_model=AdminKeysResponse,
    dependencies=[Depends(require_admin)],
)
async def list_keys(
    service: Annotated[KeyLifecycleService, Depends(get_key_service)],
) -> AdminKeysResponse:
    """List every stored key with its usage statistics."""
    records = await service.list_keys()
    entries = [
        AdminKeyEntry(
            key=mask_key(record.key),
            generated_at=record.generated_at,
            expired=service.is_expired(record),
            used=record.used,
            usage_count=record.usage_count,
            last_used=record.last_used,
        )
        for record in records
    ]
    return AdminKeysResponse(total_keys=len(entries), keys=entries)
