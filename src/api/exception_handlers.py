"""
Global exception handlers for consistent error responses.

Every error body has an "error" string. Stack traces never leave the
process; exception text is only exposed outside production.
"""

import os

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware.request_log import REQUEST_ID_HEADER, get_request_id

logger = structlog.get_logger(__name__)

ROUTER_NOT_FOUND_DETAIL = "Not Found"


def is_production_mode(request: Request | None = None) -> bool:
    """Check if running in production mode."""
    settings = getattr(request.app.state, "settings", None) if request is not None else None
    if settings is not None:
        return settings.is_production
    env = os.getenv("ENVIRONMENT", "development").lower()
    return env in ("production", "prod")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers on the FastAPI app.

    Args:
        app: The FastAPI application.
    """

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors as 400 with the offending fields."""
        fields = []
        for error in exc.errors():
            loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
            name = ".".join(loc) or "body"
            if name not in fields:
                fields.append(name)

        logger.warning("Request validation error", path=request.url.path, fields=fields)

        return JSONResponse(
            status_code=400,
            content={"error": "Invalid input.", "fields": fields},
            headers=_get_error_headers(request),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions (404, 413, etc.)."""
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            error_content = exc.detail
        elif exc.status_code == 404 and exc.detail == ROUTER_NOT_FOUND_DETAIL:
            error_content = {
                "error": "Route not found",
                "path": request.url.path,
                "method": request.method,
            }
        else:
            error_content = {
                "error": str(exc.detail) if exc.detail else _status_to_message(exc.status_code)
            }

        if exc.status_code >= 500:
            logger.error(
                "HTTP error",
                status_code=exc.status_code,
                path=request.url.path,
                detail=exc.detail,
            )
        else:
            logger.warning(
                "HTTP error",
                status_code=exc.status_code,
                path=request.url.path,
            )

        headers = _get_error_headers(request)
        if exc.headers:
            headers.update(exc.headers)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_content,
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle all unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )

        message = "Something went wrong" if is_production_mode(request) else str(exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": message},
            headers=_get_error_headers(request),
        )


def _get_error_headers(request: Request) -> dict[str, str]:
    """Headers to include in error responses."""
    headers = {}
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    if request_id:
        headers[REQUEST_ID_HEADER] = request_id
    return headers


def _status_to_message(status_code: int) -> str:
    """Convert HTTP status code to default message."""
    messages = {
        400: "Bad request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not found",
        405: "Method not allowed",
        413: "Request body too large.",
        429: "Too many requests, please try again later.",
        500: "Internal server error",
        503: "Service unavailable",
    }
    return messages.get(status_code, f"Error {status_code}")
