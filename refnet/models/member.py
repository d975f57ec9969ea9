"""
Member model.

Represents a participant node in the referral forest together with its
account balances.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refnet.config.constants import MONEY_SCALE
from refnet.models.base import Base
from refnet.models.enums import MemberStatus
from refnet.models.types import MoneyType

if TYPE_CHECKING:
    from refnet.models.referral_link import ReferralLink


class Member(Base):
    """
    Member entity.

    Balance invariant:
        available_balance + pending_balance + lifetime_withdrawn
            == lifetime_earned

    sponsor_id is set once at enrollment and never changes.
    """

    __tablename__ = "members"
    __table_args__ = (
        CheckConstraint(
            "available_balance >= 0",
            name="check_member_available_non_negative",
        ),
        CheckConstraint(
            "pending_balance >= 0",
            name="check_member_pending_non_negative",
        ),
        CheckConstraint(
            "lifetime_earned >= 0",
            name="check_member_lifetime_earned_non_negative",
        ),
        CheckConstraint(
            "lifetime_withdrawn >= 0",
            name="check_member_lifetime_withdrawn_non_negative",
        ),
        CheckConstraint(
            "sponsor_id IS NULL OR sponsor_id <> id",
            name="check_member_not_own_sponsor",
        ),
        CheckConstraint("generation >= 0", name="check_member_generation"),
    )

    # Supplied by the identity collaborator
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    referral_code: Mapped[str] = mapped_column(
        String(16), unique=True, index=True, nullable=False
    )

    # Sponsorship
    sponsor_id: Mapped[str | None] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    generation: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Balances
    available_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    pending_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    lifetime_earned: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    lifetime_withdrawn: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    rank_level: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=MemberStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
    suspended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    sponsor: Mapped[Optional["Member"]] = relationship(
        "Member",
        remote_side=[id],
        back_populates="direct_referrals",
        foreign_keys=[sponsor_id],
    )
    direct_referrals: Mapped[list["Member"]] = relationship(
        "Member",
        back_populates="sponsor",
        foreign_keys=[sponsor_id],
    )
    referral_links: Mapped[list["ReferralLink"]] = relationship(
        "ReferralLink",
        back_populates="owner",
    )

    @property
    def is_active(self) -> bool:
        """Check if member is active."""
        return self.status == MemberStatus.ACTIVE

    @property
    def is_root(self) -> bool:
        """Check if member has no sponsor."""
        return self.sponsor_id is None

    @property
    def balance_invariant_holds(self) -> bool:
        """
        Check available + pending + withdrawn == earned.

        Compared at column scale so float-backed stores do not report drift.
        """
        accounted = (
            self.available_balance
            + self.pending_balance
            + self.lifetime_withdrawn
        )
        return (
            Decimal(accounted).quantize(MONEY_SCALE)
            == Decimal(self.lifetime_earned).quantize(MONEY_SCALE)
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Member(id={self.id}, code={self.referral_code}, "
            f"sponsor_id={self.sponsor_id}, generation={self.generation})>"
        )
