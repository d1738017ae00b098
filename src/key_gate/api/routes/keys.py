"""Key generation and validation endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from key_gate.api.rate_limit import (
    GENERATE_LIMITER,
    VALIDATE_LIMITER,
    rate_limited,
)
from key_gate.api.routes.dependencies import (
    apply_rate_limit_headers,
    build_identity,
    get_key_service,
)
from key_gate.core.clock import to_epoch_ms
from key_gate.keys import KeyLifecycleService, TaskClaim


router = APIRouter(tags=["keys"])


class GenerateKeyRequest(BaseModel):
    """Body of a key generation request."""

    model_config = ConfigDict(populate_by_name=True)

    tasks_data: TaskClaim | None = Field(default=None, alias="tasksData")
    user_fingerprint: str | None = Field(default=None, alias="userFingerprint")


class GenerateKeyResponse(BaseModel):
    """Successful key generation."""

    success: bool = True
    key: str
    expires_at: int = Field(
        serialization_alias="expiresAt",
        description="Expiry instant in epoch milliseconds",
    )
    message: str = "Key generated successfully! Valid for 24 hours."


class ValidateKeyRequest(BaseModel):
    """Body of a key validation request."""

    model_config = ConfigDict(populate_by_name=True)

    key: str | None = None
    user_fingerprint: str | None = Field(default=None, alias="userFingerprint")


class TimeLeft(BaseModel):
    hours: int
    minutes: int


class ValidateKeyResponse(BaseModel):
    """Successful key validation."""

    success: bool = True
    message: str
    expires_at: int = Field(
        serialization_alias="expiresAt",
        description="Expiry instant in epoch milliseconds",
    )
    usage_count: int = Field(serialization_alias="usageCount")
    time_left: TimeLeft = Field(serialization_alias="timeLeft")


@router.post(
    "/generate-key",
    response_model=GenerateKeyResponse,
    dependencies=[Depends(rate_limited(GENERATE_LIMITER))],
)
async def generate_key(
    body: GenerateKeyRequest,
    request: Request,
    response: Response,
    service: Annotated[KeyLifecycleService, Depends(get_key_service)],
) -> GenerateKeyResponse:
    """Issue a key after the task completion claim is accepted."""
    apply_rate_limit_headers(request, response)
    identity = build_identity(request, body.user_fingerprint)

    issued = await service.issue_key(body.tasks_data, identity)

    return GenerateKeyResponse(
        key=issued.key,
        expires_at=to_epoch_ms(issued.expires_at),
        message=(
            f"Key generated successfully! Valid for {service.validity_hours} hours."
        ),
    )


@router.post(
    "/validate-key",
    response_model=ValidateKeyResponse,
    dependencies=[Depends(rate_limited(VALIDATE_LIMITER))],
)
async def validate_key(
    body: ValidateKeyRequest,
    request: Request,
    response: Response,
    service: Annotated[KeyLifecycleService, Depends(get_key_service)],
) -> ValidateKeyResponse:
    """Check a presented key and count the use."""
    apply_rate_limit_headers(request, response)
    identity = build_identity(request, body.user_fingerprint)

    result = await service.validate_key(body.key, identity)

    remaining = result.time_remaining
    return ValidateKeyResponse(
        message=f"Key is valid! Expires in {remaining.hours}h {remaining.minutes}m",
        expires_at=to_epoch_ms(result.expires_at),
        usage_count=result.usage_count,
        time_left=TimeLeft(hours=remaining.hours, minutes=remaining.minutes),
    )
