"""
FastAPI application entry point.

Public routes (`/`, `/health`, docs) are open. Everything under `/api`
requires an API key, sent as `Authorization: ApiKey <key>`, in the
configured header (`x-api-key` by default) or, when enabled, as the
`api_key` query parameter.
"""

import contextlib
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from src.api.auth.guard import APIKeyGuard, RejectionHandler
from src.api.config import AppSettings
from src.api.dependencies import close_redis_clients, redis_getter
from src.api.exception_handlers import register_exception_handlers
from src.api.middleware.auth import APIKeyMiddleware
from src.api.middleware.rate_limit import RateLimitMiddleware
from src.api.middleware.request_log import RequestLogMiddleware
from src.api.middleware.security_headers import SecurityHeadersMiddleware
from src.api.routes import health, protected, safe

logger = structlog.get_logger(__name__)

API_VERSION = "1.0.0"


def custom_openapi(app: FastAPI):
    """Generate the OpenAPI schema with the API key security schemes."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    guard_settings = app.state.settings.guard
    openapi_schema["components"] = openapi_schema.get("components", {})
    openapi_schema["components"]["securitySchemes"] = {
        "ApiKeyAuthorization": {
            "type": "apiKey",
            "in": "header",
            "name": "Authorization",
            "description": "Pass `ApiKey <your-key>` in the Authorization header.",
        },
        "ApiKeyHeader": {
            "type": "apiKey",
            "in": "header",
            "name": guard_settings.header_name,
        },
    }
    if guard_settings.allow_query_param:
        openapi_schema["components"]["securitySchemes"]["ApiKeyQuery"] = {
            "type": "apiKey",
            "in": "query",
            "name": guard_settings.query_param_name,
        }

    for path, operations in openapi_schema.get("paths", {}).items():
        if not app.state.guard.is_protected(path):
            continue
        for operation in operations.values():
            operation["security"] = [
                {name: []} for name in openapi_schema["components"]["securitySchemes"]
            ]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_redis_clients()


def create_app(
    settings: AppSettings | None = None,
    on_rejected: RejectionHandler | None = None,
    redis_client=None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Resolved settings. Read from the environment when omitted.
        on_rejected: Audit callback for requests with an invalid API key.
        redis_client: Redis client for rate limiting. When omitted one is
            created from settings.redis_url, if set.

    Returns:
        Configured app with middleware and routers.
    """
    settings = settings or AppSettings.from_env()

    if not settings.guard.key_set:
        logger.error(
            "No API keys configured; protected routes will fail closed",
            protected_prefixes=list(settings.guard.protected_prefixes),
        )
    else:
        logger.info(
            "API key guard ready",
            key_count=len(settings.guard.key_set),
            source=settings.guard.key_set.source,
            header_name=settings.guard.header_name,
            allow_query_param=settings.guard.allow_query_param,
        )

    app = FastAPI(
        title="Storefront API",
        description="Backend API for the storefront and admin dashboard.",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.guard = APIKeyGuard(settings.guard, on_rejected=on_rejected)

    app.openapi = lambda: custom_openapi(app)

    _configure_middleware(app, settings, redis_client)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["status"])
    app.include_router(protected.router, prefix="/api", tags=["protected"])
    app.include_router(safe.router, prefix="/api/safe", tags=["safe"])

    return app


def _configure_middleware(app: FastAPI, settings: AppSettings, redis_client) -> None:
    """
    Configure middleware for the application.

    Middleware execution order (from outermost to innermost):
    1. RequestLogMiddleware - X-Request-ID and access log
    2. SecurityHeadersMiddleware - hardening headers
    3. CORSMiddleware - allowed origins from CORS_ORIGINS
    4. RateLimitMiddleware - per-client limit (Redis, or in memory without it)
    5. APIKeyMiddleware - API key guard for /api

    Response flows back in reverse order.
    """
    app.add_middleware(APIKeyMiddleware, guard=app.state.guard)

    get_redis = redis_getter(settings.redis_url) if settings.redis_url else None
    app.add_middleware(
        RateLimitMiddleware,
        redis_client=redis_client,
        get_redis=get_redis,
        rate_limit=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_minutes * 60,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(RequestLogMiddleware)


# Create the application instance
app = create_app()
