"""Redis connection utilities.

Provides helper functions for creating Redis connections with configuration
from settings, shared by the notification relay and the job broker.
"""

import redis.asyncio as redis

from refnet.config.settings import Settings, settings


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """
    Create and return a Redis client with settings from config.

    Args:
        config: Settings to use (defaults to global settings)

    Returns:
        redis.Redis: Configured Redis client with decode_responses=True

    Example:
        >>> redis_client = get_redis_client()
        >>> await redis_client.publish("refnet:notifications", "{}")
        >>> await redis_client.aclose()
    """
    config = config or settings
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        password=config.redis_password,
        db=config.redis_db,
        decode_responses=True,
    )

