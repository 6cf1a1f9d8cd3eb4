# ruff: noqa: PLW0603
"""Redis connection management.

Redis only backs best-effort request counters, so a failed connection leaves
the client unset instead of stopping the application.
"""

import redis.asyncio as redis

from learninghub.config import get_settings
from learninghub.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis | None:
    """Create the shared client and check it answers a PING."""
    global _redis_client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        decode_responses=True,
    )

    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning("redis_connection_failed", error=str(e))
        await client.aclose()
        _redis_client = None
        return None

    logger.info("redis_connected", url=settings.redis_url)
    _redis_client = client
    return _redis_client


async def shutdown_redis() -> None:
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Get the Redis client, or None when Redis is unavailable."""
    return _redis_client
