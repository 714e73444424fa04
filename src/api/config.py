"""
Application configuration.

Settings are read from the environment once, at startup, and handed to the
components that need them. Nothing reads the environment per request.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from src.api.auth.key_set import parse_keys
from src.api.auth.settings import GuardSettings

logger = structlog.get_logger(__name__)

DEFAULT_RATE_LIMIT_WINDOW_MIN = 15
DEFAULT_RATE_LIMIT_MAX = 100
DEFAULT_MAX_BODY_BYTES = 10 * 1024
DEFAULT_HTTP_PORT = 5050
DEFAULT_HTTPS_PORT = 5445


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer setting, using default", name=name, value=value)
        return default


@dataclass(frozen=True)
class AppSettings:
    """Top-level settings for the API service."""

    guard: GuardSettings
    cors_origins: tuple[str, ...] = ()
    rate_limit_window_minutes: int = DEFAULT_RATE_LIMIT_WINDOW_MIN
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    environment: str = "development"
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    redis_url: str | None = None
    http_port: int = DEFAULT_HTTP_PORT
    https_port: int = DEFAULT_HTTPS_PORT
    ssl_keyfile: str | None = None
    ssl_certfile: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_keyfile and self.ssl_certfile)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppSettings":
        """Read every setting from the environment (or the given mapping)."""
        env = os.environ if environ is None else environ
        return cls(
            guard=GuardSettings.from_env(env),
            cors_origins=tuple(parse_keys(env.get("CORS_ORIGINS"))),
            rate_limit_window_minutes=_get_int(
                env, "RATE_LIMIT_WINDOW_MIN", DEFAULT_RATE_LIMIT_WINDOW_MIN
            ),
            rate_limit_max=_get_int(env, "RATE_LIMIT_MAX", DEFAULT_RATE_LIMIT_MAX),
            environment=(env.get("ENVIRONMENT") or "development").strip(),
            redis_url=env.get("REDIS_URL") or None,
            http_port=_get_int(env, "PORT", DEFAULT_HTTP_PORT),
            https_port=_get_int(env, "HTTPS_PORT", DEFAULT_HTTPS_PORT),
            ssl_keyfile=env.get("SSL_KEYFILE") or None,
            ssl_certfile=env.get("SSL_CERTFILE") or None,
        )
