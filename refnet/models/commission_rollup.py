"""
CommissionRollup model.

Monthly aggregate of a member's commission ledger, keyed by (member, yyyymm).
Maintained in the same transaction as the ledger rows it summarizes and
always equal to a full scan of those rows.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from refnet.models.base import Base
from refnet.models.types import MoneyType


class CommissionRollup(Base):
    """CommissionRollup entity."""

    __tablename__ = "commission_rollups"

    member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), primary_key=True
    )
    # Calendar month as yyyymm, e.g. 202610
    period: Mapped[int] = mapped_column(Integer, primary_key=True)

    earned_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    pending_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    record_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionRollup(member_id={self.member_id}, period={self.period}, "
            f"earned={self.earned_total}, pending={self.pending_total})>"
        )
