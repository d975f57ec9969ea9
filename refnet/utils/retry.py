"""
Retry helper for transient store failures.

Operations keyed by an idempotency key (distribute, settle) are safe to
re-run after a TransientError; this helper does so with backoff.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from refnet.utils.exceptions import TransientError

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.05,
    operation_name: str = "operation",
) -> T:
    """
    Run operation, retrying on TransientError with exponential backoff.

    Args:
        operation: Factory returning a fresh awaitable per attempt
        max_attempts: Maximum number of attempts
        base_delay: Delay before the second attempt in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the first successful attempt

    Raises:
        TransientError: If every attempt failed transiently
    """
    for attempt in range(max_attempts):
        try:
            result = await operation()
        except TransientError as e:
            if attempt == max_attempts - 1:
                logger.error(
                    f"{operation_name} failed after {max_attempts} attempts: {e}"
                )
                raise

            delay = base_delay * 2 ** attempt
            logger.warning(
                f"{operation_name} failed on attempt {attempt + 1}/{max_attempts}: {e}. "
                f"Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.success(f"{operation_name} succeeded on attempt {attempt + 1}")
        return result

    raise ValueError("max_attempts must be at least 1")
