"""
Public status endpoints. These sit outside /api and need no API key.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from src.api.schemas import StatusResponse

router = APIRouter()


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


@router.get("/", response_model=StatusResponse)
async def root(request: Request) -> StatusResponse:
    """Service banner."""
    settings = request.app.state.settings
    return StatusResponse(
        message="Storefront API is running",
        timestamp=utc_timestamp(),
        environment=settings.environment,
    )


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Liveness check.

    Returns:
        Status and the current server time.
    """
    return {"status": "healthy", "timestamp": utc_timestamp()}
