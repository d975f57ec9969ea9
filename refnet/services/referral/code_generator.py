"""
Referral code generation.

Codes are fixed-length, URL-safe and drawn from a cryptographic random
source. Uniqueness is checked against the store with bounded retries.
"""

import secrets
from collections.abc import Awaitable, Callable

from loguru import logger

from refnet.config.constants import CODE_ALPHABET
from refnet.utils.exceptions import CodeGenerationExhausted


def generate_code(length: int) -> str:
    """
    Generate a random code.

    Args:
        length: Number of characters

    Returns:
        Uppercase alphanumeric code
    """
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    """Normalize user-entered code for lookup."""
    return code.strip().upper()


async def generate_unique_code(
    is_taken: Callable[[str], Awaitable[bool]],
    length: int,
    max_attempts: int,
    namespace: str = "referral",
) -> str:
    """
    Generate a code not yet present in the store.

    Args:
        is_taken: Async predicate checking the code's unique index
        length: Code length
        max_attempts: Attempts before giving up
        namespace: Code space name for logging (referral or link)

    Returns:
        Unique code

    Raises:
        CodeGenerationExhausted: If every attempt collided
    """
    for attempt in range(1, max_attempts + 1):
        code = generate_code(length)
        if not await is_taken(code):
            return code

        logger.warning(
            f"{namespace.capitalize()} code collision, regenerating",
            extra={"namespace": namespace, "attempt": attempt},
        )

    logger.error(
        f"Could not generate unique {namespace} code after {max_attempts} attempts"
    )
    raise CodeGenerationExhausted(
        f"No unique {namespace} code after {max_attempts} attempts",
        namespace=namespace,
        attempts=max_attempts,
    )
