"""
Authentication middleware for API key validation.

Runs the API key guard in front of every path under the protected prefixes
(`/api` by default). Public paths pass straight through.
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.api.auth.guard import APIKeyError, APIKeyGuard

logger = structlog.get_logger(__name__)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Middleware that rejects unauthenticated requests to protected paths.

    Returns 500 when no keys are configured and 401 for missing or invalid
    keys, each with a `{"error": "<message>"}` body.
    """

    def __init__(self, app, guard: APIKeyGuard) -> None:
        """
        Initialize auth middleware.

        Args:
            app: The ASGI application.
            guard: The guard built from startup settings.
        """
        super().__init__(app)
        self.guard = guard

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Authenticate protected requests before handing them on."""
        if not self.guard.is_protected(request.url.path):
            return await call_next(request)

        try:
            self.guard.authenticate(request)
        except APIKeyError as exc:
            return self._error_response(exc)

        return await call_next(request)

    def _error_response(self, exc: APIKeyError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
