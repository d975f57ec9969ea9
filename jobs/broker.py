"""
Dramatiq broker configuration.

Redis-based message broker for qualifying event delivery.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import (
    AgeLimit,
    Callbacks,
    CurrentMessage,
    Pipelines,
    Retries,
    ShutdownNotifications,
    TimeLimit,
)
from loguru import logger

from refnet.config.constants import (
    EVENT_RETRY_MAX_BACKOFF_MS,
    EVENT_RETRY_MIN_BACKOFF_MS,
)
from refnet.config.settings import settings
from refnet.utils.exceptions import is_retryable


def should_retry(retries_so_far: int, exception: Exception) -> bool:
    """Retry transient failures only, up to event_max_retries."""
    return retries_so_far < settings.event_max_retries and is_retryable(exception)


# ShutdownNotifications: lets workers finish the current event on shutdown
# CurrentMessage: exposes message ids to actors for logging
# Retries: exponential backoff for transient failures only
redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
    middleware=[
        AgeLimit(),
        TimeLimit(),
        ShutdownNotifications(),
        Callbacks(),
        Pipelines(),
        CurrentMessage(),
        Retries(
            max_retries=settings.event_max_retries,
            min_backoff=EVENT_RETRY_MIN_BACKOFF_MS,
            max_backoff=EVENT_RETRY_MAX_BACKOFF_MS,
            retry_when=should_retry,
        ),
    ],
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    f"Dramatiq broker initialized: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)
