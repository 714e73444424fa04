"""
Shared dependencies: the Redis client used for rate limiting.
"""

from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

# Global instances, keyed by URL
_redis_clients: dict[str, aioredis.Redis] = {}


async def get_redis_client(redis_url: str) -> aioredis.Redis:
    """
    Get the Redis client for a URL.

    Creates the client on first call.
    """
    client = _redis_clients.get(redis_url)
    if client is None:
        client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            max_connections=10,
        )
        _redis_clients[redis_url] = client
    return client


def redis_getter(redis_url: str) -> Callable[[], Awaitable[aioredis.Redis]]:
    """Bind a URL to get_redis_client for middleware that takes a zero-arg getter."""

    async def _get() -> aioredis.Redis:
        return await get_redis_client(redis_url)

    return _get


async def close_redis_clients() -> None:
    """Close every client created by get_redis_client."""
    while _redis_clients:
        _, client = _redis_clients.popitem()
        await client.aclose()
