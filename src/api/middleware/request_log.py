"""
Request logging middleware.

Assigns each request an X-Request-ID (the client's, if it sent one), binds it
to the structlog context for the duration of the request and writes one
access log line when the response is ready.
"""

import time
import uuid
from contextvars import ContextVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

request_id_context: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_context.get()


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Tags requests with an ID and logs method, path, status and duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_context.set(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            with structlog.contextvars.bound_contextvars(request_id=request_id):
                response = await call_next(request)
                logger.info(
                    "Request handled",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    authenticated=getattr(request.state, "authenticated_with_api_key", False),
                )

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_context.reset(token)
