"""
Process entry point for the API.

With SSL_KEYFILE and SSL_CERTFILE set, the API is served over HTTPS on
HTTPS_PORT and a plain HTTP listener on PORT answers every request with a
301 to the HTTPS URL. Without them the API is served over HTTP on PORT.
"""

import asyncio
import os

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import RedirectResponse
from starlette.routing import Route

from src.api.config import AppSettings
from src.api.log_config import configure_logging
from src.api.main import create_app

logger = structlog.get_logger(__name__)


def https_url(request: Request, https_port: int) -> str:
    """The HTTPS URL for a plain HTTP request."""
    host = request.url.hostname or "localhost"
    target = f"https://{host}:{https_port}{request.url.path}"
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return target


def create_redirect_app(https_port: int) -> Starlette:
    """Starlette app that redirects every request to HTTPS."""

    async def redirect(request: Request) -> RedirectResponse:
        return RedirectResponse(https_url(request, https_port), status_code=301)

    methods = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    return Starlette(routes=[Route("/{path:path}", endpoint=redirect, methods=methods)])


async def main() -> None:
    """Run the API server(s)."""
    configure_logging()
    settings = AppSettings.from_env()
    host = os.getenv("HOST", "0.0.0.0")
    app = create_app(settings)

    if not settings.tls_enabled:
        logger.info("API server starting", scheme="http", port=settings.http_port)
        config = uvicorn.Config(app, host=host, port=settings.http_port, log_level="info")
        await uvicorn.Server(config).serve()
        return

    for path in (settings.ssl_keyfile, settings.ssl_certfile):
        if not os.path.isfile(path):
            logger.error("Could not load SSL certificate/key", path=path)
            raise SystemExit(1)

    logger.info(
        "API server starting",
        scheme="https",
        https_port=settings.https_port,
        redirect_port=settings.http_port,
    )
    https_config = uvicorn.Config(
        app,
        host=host,
        port=settings.https_port,
        ssl_keyfile=settings.ssl_keyfile,
        ssl_certfile=settings.ssl_certfile,
        log_level="info",
    )
    http_config = uvicorn.Config(
        create_redirect_app(settings.https_port),
        host=host,
        port=settings.http_port,
        log_level="info",
    )
    await asyncio.gather(
        uvicorn.Server(https_config).serve(),
        uvicorn.Server(http_config).serve(),
    )


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
