"""
Redis connection management.
"""
from typing import Optional

import redis.asyncio as redis

from authgate.core.config import settings
from authgate.core.logging import get_logger

logger = get_logger(__name__)

# Redis connection pool
redis_pool: Optional[redis.ConnectionPool] = None


async def get_redis_pool() -> redis.ConnectionPool:
    """
    Get or create Redis connection pool.

    Returns:
        Redis connection pool
    """
    global redis_pool

    if redis_pool is None:
        redis_pool = redis.ConnectionPool.from_url(
            str(settings.REDIS_URL),
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
        logger.info("redis_pool_created", max_connections=settings.REDIS_MAX_CONNECTIONS)

    return redis_pool


async def get_redis() -> redis.Redis:
    """
    Get Redis client instance.

    Returns:
        Redis client
    """
    pool = await get_redis_pool()
    return redis.Redis(connection_pool=pool)


async def close_redis_pool() -> None:
    """Disconnect and drop the shared pool."""
    global redis_pool

    if redis_pool is not None:
        await redis_pool.disconnect()
        redis_pool = None
        logger.info("redis_pool_closed")
