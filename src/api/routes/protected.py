"""
Protected diagnostic endpoints.

Everything here is mounted under /api and only reachable with a valid key.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request

from src.api.routes.health import utc_timestamp
from src.api.sanitize import sanitized_json_body, sanitized_query
from src.api.schemas import StatusResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/test", response_model=StatusResponse)
async def api_test(request: Request) -> StatusResponse:
    """Confirm that the caller's API key was accepted."""
    logger.debug(
        "Protected test route",
        authenticated=getattr(request.state, "authenticated_with_api_key", False),
    )
    return StatusResponse(message="API key valid, route protected!", timestamp=utc_timestamp())


@router.post("/test-sanitize")
async def test_sanitize(
    body: Annotated[Any, Depends(sanitized_json_body)],
    query: Annotated[dict[str, str], Depends(sanitized_query)],
) -> dict[str, Any]:
    """Echo the request body and query parameters after sanitisation."""
    return {
        "message": "Sanitization successful",
        "sanitizedBody": body,
        "sanitizedQuery": query,
        "timestamp": utc_timestamp(),
    }
