"""Fixed-window request counters kept in Redis."""

import redis.asyncio as redis

from learninghub.core.logging import get_logger


logger = get_logger(__name__)


class RateLimitExceededError(Exception):
    """Too many requests for one key inside the current window."""

    def __init__(self, message: str, retry_after: int):
        self.message = message
        self.code = "rate_limited"
        self.retry_after = retry_after
        super().__init__(message)


class RateLimiter:
    """Count actions per key and refuse them past a limit.

    Without a Redis client every call is allowed.
    """

    def __init__(self, redis_client: redis.Redis | None, window_seconds: int):
        self.redis = redis_client
        self.window_seconds = window_seconds

    async def hit(self, scope: str, key: str, limit: int) -> int:
        """Record one action and raise once ``limit`` is exceeded.

        Returns:
            The number of actions recorded in the current window.
        """
        if not self.redis:
            return 0

        redis_key = f"ratelimit:{scope}:{key}"
        try:
            pipe = self.redis.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds, nx=True)
            count, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.warning("rate_limit_unavailable", scope=scope, error=str(e))
            return 0

        if count > limit:
            try:
                ttl = await self.redis.ttl(redis_key)
            except redis.RedisError:
                ttl = self.window_seconds
            logger.warning("rate_limit_exceeded", scope=scope, count=count)
            raise RateLimitExceededError(
                "Too many requests. Please try again later.",
                retry_after=max(ttl, 1),
            )
        return count
