"""
Database decorators for store-error translation.

Raw SQLAlchemy and driver errors never reach callers: they are mapped to the
referral network taxonomy so callers can decide between retrying and giving up.
Rollback is left to the transaction context manager that owns the session.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from loguru import logger
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)

from refnet.utils.exceptions import (
    ConflictError,
    InvariantViolation,
    ReferralNetworkError,
    TransactionTimeout,
    TransientError,
    ValidationError,
)


P = ParamSpec("P")
T = TypeVar("T")


def translate_store_errors(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """
    Decorator that maps store failures to the error taxonomy.

    Usage:
        @translate_store_errors
        async def distribute(self, event):
            async with self._transaction() as session:
                ...

    The decorator will:
    1. Pass domain errors (ReferralNetworkError) through unchanged
    2. Map timeouts to TransactionTimeout
    3. Map IntegrityError to ConflictError
    4. Map DataError (out-of-range or invalid values) to ValidationError
    5. Map OperationalError/DBAPIError to TransientError
    6. Log invariant violations before re-raising them

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function raising only taxonomy errors for store failures
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except InvariantViolation as e:
            logger.error(
                f"Invariant violation in {func.__name__}: {e.message}",
                extra={"operation": func.__name__, **_context(e)},
            )
            raise
        except ReferralNetworkError:
            raise
        except TimeoutError as e:
            logger.warning(f"Transaction timed out in {func.__name__}")
            raise TransactionTimeout(
                f"{func.__name__} exceeded the transaction timeout"
            ) from e
        except IntegrityError as e:
            logger.warning(
                f"Constraint violated in {func.__name__}: {e.orig}"
            )
            raise ConflictError(
                f"{func.__name__} conflicted with a concurrent write"
            ) from e
        except DataError as e:
            logger.warning(
                f"Value rejected by the store in {func.__name__}: {e.orig}"
            )
            raise ValidationError(
                f"{func.__name__} received a value the store cannot hold"
            ) from e
        except (OperationalError, DBAPIError) as e:
            logger.warning(
                f"Store error in {func.__name__}: {type(e.orig).__name__ if e.orig else type(e).__name__}"
            )
            raise TransientError(
                f"Store unavailable during {func.__name__}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                f"Unexpected store error in {func.__name__}: {e}",
                exc_info=True,
            )
            raise TransientError(
                f"Store failure during {func.__name__}"
            ) from e

    return wrapper


def _context(exc: ReferralNetworkError) -> dict[str, Any]:
    return {key: str(value) for key, value in exc.context.items()}
