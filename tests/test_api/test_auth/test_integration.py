"""
Integration tests for the full application with the API key guard.
"""

import re
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.auth.key_set import KeySet
from src.api.auth.settings import GuardSettings
from src.api.config import AppSettings
from src.api.main import create_app

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


@pytest.fixture
def app_with_auth(app_settings):
    """App guarded by the keys abc123 and def456."""
    return create_app(app_settings)


@pytest.fixture
async def client(app_with_auth):
    async with AsyncClient(
        transport=ASGITransport(app=app_with_auth),
        base_url="http://test",
    ) as client:
        yield client


class TestScenarios:
    """Key set ["abc123", "def456"]."""

    @pytest.mark.asyncio
    async def test_valid_key_succeeds(self, client):
        response = await client.get("/api/test", headers={"x-api-key": "abc123"})
        assert response.status_code == 200
        assert response.json()["message"] == "API key valid, route protected!"

    @pytest.mark.asyncio
    async def test_wrong_case_rejected(self, client):
        response = await client.get("/api/test", headers={"x-api-key": "ABC123"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key."}

    @pytest.mark.asyncio
    async def test_no_credential(self, client):
        response = await client.get("/api/test")
        assert response.status_code == 401
        assert response.json() == {"error": "API key required."}

    @pytest.mark.asyncio
    async def test_second_key_via_authorization(self, client):
        response = await client.get("/api/test", headers={"Authorization": "ApiKey def456"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_protected_route_still_needs_key(self, client):
        response = await client.get("/api/does-not-exist")
        assert response.status_code == 401

        response = await client.get("/api/does-not-exist", headers={"x-api-key": "abc123"})
        assert response.status_code == 404
        assert response.json()["error"] == "Route not found"


class TestEmptyKeySet:
    @pytest.mark.asyncio
    async def test_every_protected_request_fails_with_500(self):
        app = create_app(AppSettings(guard=GuardSettings(key_set=KeySet())))
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            for headers in ({}, {"x-api-key": "abc123"}, {"Authorization": "ApiKey abc123"}):
                response = await client.get("/api/test", headers=headers)
                assert response.status_code == 500
                assert response.json() == {"error": "API key configuration missing on server."}

            assert (await client.get("/health")).status_code == 200


class TestFromEnvironment:
    @pytest.mark.asyncio
    async def test_keys_read_once_at_startup(self):
        with patch.dict("os.environ", {"API_KEYS": "env-key-1, env-key-2"}, clear=True):
            app = create_app()

        # Changing the environment afterwards has no effect
        with patch.dict("os.environ", {"API_KEYS": "other"}, clear=True):
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                ok = await client.get("/api/test", headers={"x-api-key": "env-key-2"})
                assert ok.status_code == 200
                other = await client.get("/api/test", headers={"x-api-key": "other"})
                assert other.status_code == 401

    @pytest.mark.asyncio
    async def test_query_param_enabled_from_environment(self):
        env = {"API_KEYS": "abc123", "API_KEY_ALLOW_QUERY": "true"}
        with patch.dict("os.environ", env, clear=True):
            app = create_app()
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get("/api/test", params={"api_key": "abc123"})
            assert response.status_code == 200


class TestAuditCallback:
    @pytest.mark.asyncio
    async def test_on_rejected_wired_through_create_app(self, app_settings):
        attempts = []
        app = create_app(app_settings, on_rejected=attempts.append)
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            await client.get("/api/test", headers={"x-api-key": "abcdefgh"})

        assert [a.truncated_credential for a in attempts] == ["abcdef..."]

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_401(self, app_settings):
        def broken_sink(attempt):  # noqa: ARG001
            raise RuntimeError("audit sink down")

        app = create_app(app_settings, on_rejected=broken_sink)
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get("/api/test", headers={"x-api-key": "wrong-key"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key."}


class TestMiddlewareOrder:
    @pytest.mark.asyncio
    async def test_request_id_on_auth_failure(self, client):
        response = await client.get("/api/test")
        assert response.status_code == 401
        assert UUID_PATTERN.match(response.headers["X-Request-ID"])

    @pytest.mark.asyncio
    async def test_security_headers_on_auth_failure(self, client):
        response = await client.get("/api/test")
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    @pytest.mark.asyncio
    async def test_rate_limit_enforced_without_redis(self, app_settings):
        app = create_app(AppSettings(guard=app_settings.guard, rate_limit_max=1))
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            assert (await client.get("/health")).status_code == 200
            assert (await client.get("/health")).status_code == 429

    @pytest.mark.asyncio
    async def test_rate_limit_applies_before_auth(self, app_settings, fake_redis):
        settings = AppSettings(guard=app_settings.guard, rate_limit_max=1)
        app = create_app(settings, redis_client=fake_redis)
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            assert (await client.get("/api/test")).status_code == 401
            response = await client.get("/api/test", headers={"x-api-key": "abc123"})
            assert response.status_code == 429


class TestCORS:
    @pytest.mark.asyncio
    async def test_allowed_origin_preflight(self, app_settings):
        settings = AppSettings(
            guard=app_settings.guard, cors_origins=("https://shop.example.com",)
        )
        app = create_app(settings)
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.options(
                "/api/test",
                headers={
                    "Origin": "https://shop.example.com",
                    "Access-Control-Request-Method": "GET",
                    "Access-Control-Request-Headers": "x-api-key",
                },
            )
            assert response.status_code == 200
            assert (
                response.headers["access-control-allow-origin"] == "https://shop.example.com"
            )
            assert response.headers["access-control-allow-credentials"] == "true"

    @pytest.mark.asyncio
    async def test_unlisted_origin_gets_no_cors_headers(self, client):
        response = await client.get(
            "/health", headers={"Origin": "https://evil.example.net"}
        )
        assert "access-control-allow-origin" not in response.headers
