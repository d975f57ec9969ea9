"""
Model enumerations.

String-valued enums stored as plain strings in the database.
"""

from enum import StrEnum


class MemberStatus(StrEnum):
    """Member account status. Members are never deleted, only suspended."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


class CommissionType(StrEnum):
    """Kind of commission credited to an ancestor."""

    DIRECT = "direct"
    LEVEL_BONUS = "level_bonus"
    RANK_BONUS = "rank_bonus"


class CommissionStatus(StrEnum):
    """Commission record lifecycle (strictly forward)."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CommissionStatus.COMPLETED, CommissionStatus.FAILED)


class SettlementOutcome(StrEnum):
    """Final outcome reported by the settlement collaborator."""

    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def status(self) -> CommissionStatus:
        return CommissionStatus(self.value)


class EventKind(StrEnum):
    """Kind of qualifying event pushed by the event source."""

    TRANSACTION = "transaction"
    SIGNUP = "signup"

