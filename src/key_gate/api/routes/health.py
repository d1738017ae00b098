"""Liveness endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from key_gate.core.clock import utc_now


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    success: bool = True
    status: str = Field(default="OK", description="Service health status")
    timestamp: str = Field(description="Current server time (ISO 8601)")


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report that the process is up."""
    return HealthResponse(timestamp=utc_now().isoformat().replace("+00:00", "Z"))
