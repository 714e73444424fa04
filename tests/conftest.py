"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator, Callable
from urllib.parse import urlencode

import fakeredis.aioredis
import pytest
from starlette.requests import Request

from src.api.auth.key_set import KeySet
from src.api.auth.settings import GuardSettings
from src.api.config import AppSettings

TEST_KEYS = ("abc123", "def456")


@pytest.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
    """Provide a fake Redis client for testing."""
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.aclose()


@pytest.fixture
def key_set() -> KeySet:
    """Key set holding the two test keys."""
    return KeySet(TEST_KEYS)


@pytest.fixture
def guard_settings(key_set: KeySet) -> GuardSettings:
    """Guard settings with defaults and the test keys."""
    return GuardSettings(key_set=key_set)


@pytest.fixture
def app_settings(guard_settings: GuardSettings) -> AppSettings:
    """Application settings for tests (no Redis, development mode)."""
    return AppSettings(guard=guard_settings, environment="development")


def build_request(
    path: str = "/api/test",
    headers: dict[str, str] | None = None,
    query: dict[str, str] | None = None,
    client: tuple[str, int] | None = ("203.0.113.7", 51000),
    method: str = "GET",
) -> Request:
    """Build a bare Starlette request without running an app."""
    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("test", 80),
        "root_path": "",
        "path": path,
        "query_string": urlencode(query or {}).encode(),
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory fixture for bare requests."""
    return build_request
