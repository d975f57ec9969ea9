"""
Exception handling utilities.

Defines the categorized exception types surfaced by the referral network.
Every user-visible failure is one of four kinds:

- ValidationError: rejected synchronously, never retried automatically
- ConflictError: retried internally, surfaced only once retries run out
- TransientError: safe to retry with the same idempotency key
- InvariantViolation: fatal, indicates a bug or data corruption
"""

from sqlalchemy.exc import OperationalError


class ReferralNetworkError(Exception):
    """Base class for all referral network errors."""

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


# ========================================================================
# VALIDATION
# ========================================================================


class ValidationError(ReferralNetworkError):
    """Input rejected before any write."""
    pass


class InvalidSponsorCode(ValidationError):
    """Sponsor code does not resolve to an active member."""
    pass


class SelfReferral(ValidationError):
    """Candidate tried to enroll under their own code."""
    pass


class DuplicateMember(ValidationError):
    """Member id is already enrolled."""
    pass


class MalformedEvent(ValidationError):
    """Qualifying event payload is invalid."""
    pass


class UnknownEvent(ValidationError):
    """Qualifying event references an unknown acting member."""
    pass


class MemberNotFound(ValidationError):
    """Member does not exist."""
    pass


class RecordNotFound(ValidationError):
    """Commission record does not exist."""
    pass


class LinkNotFound(ValidationError):
    """Referral link code does not exist."""
    pass


class InvalidStatusTransition(ValidationError):
    """Commission record status cannot move to the requested status."""
    pass


class InsufficientBalance(ValidationError):
    """Available balance does not cover the requested amount."""
    pass


class WithdrawalBlocked(ValidationError):
    """Suspended members cannot withdraw."""
    pass


# ========================================================================
# CONFLICT
# ========================================================================


class ConflictError(ReferralNetworkError):
    """Operation conflicts with existing state."""
    pass


class CodeGenerationExhausted(ConflictError):
    """No unique code found within the configured attempts."""
    pass


# ========================================================================
# TRANSIENT
# ========================================================================


class TransientError(ReferralNetworkError):
    """Store unavailable, lock contention or timeout."""
    pass


class TransactionTimeout(TransientError):
    """Transaction exceeded the configured timeout and was aborted."""
    pass


# ========================================================================
# INVARIANT
# ========================================================================


class InvariantViolation(ReferralNetworkError):
    """Data corruption or a bug. Halts the operation without partial commit."""
    pass


class CycleDetected(InvariantViolation):
    """Sponsor chain walk revisited a node."""
    pass


class BalanceInvariantBroken(InvariantViolation):
    """available + pending + withdrawn no longer equals lifetime earned."""
    pass


class RollupMismatch(InvariantViolation):
    """Monthly rollup differs from a full ledger scan."""
    pass


# Exception categories based on handling strategy

# Safe to retry with the same idempotency key
RETRYABLE = (
    TransientError,
    OperationalError,  # Lock contention, store unavailable
    TimeoutError,
)


def is_retryable(exc: Exception) -> bool:
    """
    Check if exception can be retried with the same idempotency key.

    Args:
        exc: Exception to check

    Returns:
        True if the operation may be retried
    """
    return isinstance(exc, RETRYABLE)
