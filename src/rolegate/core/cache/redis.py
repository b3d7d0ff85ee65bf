"""Redis client construction for the permission cache.

Provides an async Redis client backed by a connection pool, built
from settings instead of a process-wide global so each ``RoleGate``
owns (and closes) its own pool.
"""

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from rolegate.config import Settings


def create_redis_client(
    settings: Settings, max_connections: int = 50
) -> redis.Redis:  # type: ignore[type-arg]
    """Create a Redis client with its own connection pool.

    Args:
        settings: Settings holding ``redis_url``
        max_connections: Upper bound for pooled connections

    Returns:
        Redis client decoding responses to ``str``
    """
    pool = ConnectionPool.from_url(
        str(settings.redis_url),
        max_connections=max_connections,
        decode_responses=True,
    )
    return redis.Redis(connection_pool=pool)


async def close_redis_client(client: redis.Redis) -> None:  # type: ignore[type-arg]
    """Close a client created by ``create_redis_client`` and its pool."""
    await client.aclose()
    await client.connection_pool.disconnect()
