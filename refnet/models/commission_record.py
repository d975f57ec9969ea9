"""
CommissionRecord model.

Append-only ledger entry crediting one ancestor for one qualifying event.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refnet.models.base import Base
from refnet.models.enums import CommissionStatus
from refnet.models.types import MoneyType, RatePercentType

if TYPE_CHECKING:
    from refnet.models.member import Member


class CommissionRecord(Base):
    """
    CommissionRecord entity.

    Attributes:
        id: Primary key
        recipient_id: Ancestor credited by this record
        source_member_id: Member whose event triggered the payout
        originating_event_id: Idempotency key of the qualifying event
        event_kind: Kind of qualifying event (transaction, signup)
        commission_type: direct, level_bonus or rank_bonus
        generation_distance: Sponsor hops between source and recipient
        base_amount: Event amount the rate was applied to
        amount: Credited amount, rounded to currency precision
        rate_applied: Rate in percent
        currency: Currency code
        status: pending -> processing -> completed | failed
        created_at: When the record was written
        settled_at: When the record reached a terminal status
        failure_reason: Reason reported for failed settlement
    """

    __tablename__ = "commission_records"
    __table_args__ = (
        UniqueConstraint(
            "recipient_id",
            "originating_event_id",
            "generation_distance",
            name="uq_commission_recipient_event_distance",
        ),
        CheckConstraint("amount >= 0", name="check_commission_amount"),
        CheckConstraint(
            "generation_distance >= 1", name="check_commission_distance"
        ),
        Index(
            "idx_commission_recipient_status_created",
            "recipient_id",
            "status",
            "created_at",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    recipient_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    source_member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    originating_event_id: Mapped[str] = mapped_column(
        String(128), nullable=False, index=True
    )
    event_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    commission_type: Mapped[str] = mapped_column(String(20), nullable=False)
    generation_distance: Mapped[int] = mapped_column(Integer, nullable=False)

    base_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    rate_applied: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )
    currency: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=CommissionStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failure_reason: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Relationships
    recipient: Mapped["Member"] = relationship(
        "Member", foreign_keys=[recipient_id]
    )
    source_member: Mapped["Member"] = relationship(
        "Member", foreign_keys=[source_member_id]
    )

    @property
    def is_settled(self) -> bool:
        """Check if record reached a terminal status."""
        return CommissionStatus(self.status).is_terminal

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionRecord(id={self.id}, recipient_id={self.recipient_id}, "
            f"event={self.originating_event_id}, "
            f"distance={self.generation_distance}, amount={self.amount}, "
            f"status={self.status})>"
        )
