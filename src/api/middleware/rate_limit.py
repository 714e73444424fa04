"""
Rate limiting middleware using a sliding window.

Limits each client address to `rate_limit` requests per window. Runs ahead
of authentication, so unauthenticated traffic is throttled too. Counts live
in Redis when a client is configured, otherwise in process memory.
"""

import hashlib
import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from limits import RateLimitItemPerSecond
from limits.aio.storage import MemoryStorage
from limits.aio.strategies import MovingWindowRateLimiter
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger(__name__)

DEFAULT_RATE_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 15 * 60
RATE_LIMITED_MESSAGE = "Too many requests, please try again later."


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that enforces per-client rate limits.

    Returns 429 with Retry-After header when the limit is exceeded and adds
    X-RateLimit-* headers to every counted response. Without a Redis client
    the counts are kept in memory, per process.
    """

    def __init__(
        self,
        app,
        redis_client=None,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        get_redis: Callable[[], Awaitable] | None = None,
    ) -> None:
        """
        Initialize rate limit middleware.

        Args:
            app: The ASGI application.
            redis_client: Redis client instance (optional).
            rate_limit: Max requests per window.
            window_seconds: Window duration in seconds.
            get_redis: Async function returning a Redis client (alternative to redis_client).
        """
        super().__init__(app)
        self._redis_client = redis_client
        self._get_redis = get_redis
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self._limit_item = RateLimitItemPerSecond(rate_limit, window_seconds)
        self._memory_limiter = MovingWindowRateLimiter(MemoryStorage())
        self._warned_memory = False
        logger.info(
            "RateLimitMiddleware initialized",
            rate_limit=self.rate_limit,
            window_seconds=self.window_seconds,
        )

    async def _get_redis_client(self):
        """Get Redis client (lazy initialization)."""
        if self._redis_client:
            return self._redis_client
        if self._get_redis:
            return await self._get_redis()
        return None

    def _client_key(self, request: Request) -> str:
        """Hash the client address for use in storage keys."""
        address = request.client.host if request.client else "unknown"
        digest = hashlib.sha256(address.encode()).hexdigest()[:16]
        return f"rate_limit:{digest}"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Count the request and reject it once the window is full."""
        client_key = self._client_key(request)
        redis = await self._get_redis_client()

        try:
            if redis:
                allowed, remaining, reset_time = await self._hit_redis(redis, client_key)
            else:
                allowed, remaining, reset_time = await self._hit_memory(client_key)
        except Exception as e:
            # Redis trouble must not take the API down
            logger.error("Rate limiting error", error=str(e))
            return await call_next(request)

        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                client_key=client_key,
                limit=self.rate_limit,
                path=request.url.path,
            )
            return self._rate_limited_response(reset_time=reset_time)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rate_limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, remaining))
        response.headers["X-RateLimit-Reset"] = str(reset_time)
        return response

    async def _hit_redis(self, redis, redis_key: str) -> tuple[bool, int, int]:
        """
        Record a hit in the Redis sorted set for this client.

        Trimming, adding and counting run in one MULTI/EXEC block, so
        concurrent requests cannot all see the same count. A rejected hit is
        removed again and does not extend the window.
        """
        current_time = time.time()
        window_start = current_time - self.window_seconds
        # Score = timestamp, member = unique request ID
        member = f"{current_time}:{uuid.uuid4().hex}"

        pipe = redis.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, "-inf", window_start)
        pipe.zadd(redis_key, {member: current_time})
        pipe.zcard(redis_key)
        pipe.expire(redis_key, self.window_seconds + 10)
        results = await pipe.execute()
        current_count = results[2]

        if current_count <= self.rate_limit:
            reset_time = int(current_time + self.window_seconds)
            return True, self.rate_limit - current_count, reset_time

        await redis.zrem(redis_key, member)
        oldest = await redis.zrange(redis_key, 0, 0, withscores=True)
        if oldest:
            reset_time = int(oldest[0][1] + self.window_seconds) + 1
        else:
            reset_time = int(current_time + self.window_seconds)
        return False, 0, reset_time

    async def _hit_memory(self, client_key: str) -> tuple[bool, int, int]:
        """Record a hit in the in-process moving window."""
        if not self._warned_memory:
            logger.warning("Rate limiting uses in-memory storage: no Redis client")
            self._warned_memory = True

        allowed = await self._memory_limiter.hit(self._limit_item, client_key)
        stats = await self._memory_limiter.get_window_stats(self._limit_item, client_key)
        return allowed, stats.remaining, int(stats.reset_time) + 1

    def _rate_limited_response(self, reset_time: int) -> JSONResponse:
        """Create a 429 Too Many Requests response."""
        retry_after = max(1, reset_time - int(time.time()))
        response = JSONResponse(
            status_code=429,
            content={"error": RATE_LIMITED_MESSAGE},
        )
        response.headers["Retry-After"] = str(retry_after)
        response.headers["X-RateLimit-Limit"] = str(self.rate_limit)
        response.headers["X-RateLimit-Remaining"] = "0"
        response.headers["X-RateLimit-Reset"] = str(reset_time)
        return response
