"""Tests for the Redis-backed rate limiter."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from learninghub.core.rate_limit import RateLimiter, RateLimitExceededError


def _redis_client(count: int) -> MagicMock:
    client = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True])
    client.pipeline.return_value = pipe
    client.ttl = AsyncMock(return_value=42)
    return client


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_without_redis_allows(self) -> None:
        assert await RateLimiter(None, 60).hit("signup", "a@example.com", 1) == 0

    @pytest.mark.asyncio
    async def test_under_limit(self) -> None:
        limiter = RateLimiter(_redis_client(2), 60)
        assert await limiter.hit("signup", "a@example.com", 5) == 2

    @pytest.mark.asyncio
    async def test_over_limit_reports_ttl(self) -> None:
        limiter = RateLimiter(_redis_client(6), 60)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.hit("signup", "a@example.com", 5)

        assert exc_info.value.retry_after == 42

    @pytest.mark.asyncio
    async def test_counter_failure_allows(self) -> None:
        client = _redis_client(0)
        client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")

        assert await RateLimiter(client, 60).hit("signup", "a@example.com", 5) == 0

    @pytest.mark.asyncio
    async def test_ttl_failure_falls_back_to_window(self) -> None:
        client = _redis_client(6)
        client.ttl.side_effect = redis.ConnectionError("down")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await RateLimiter(client, 60).hit("signup", "a@example.com", 5)

        assert exc_info.value.retry_after == 60
