"""
ReferralEdge model.

Denormalized ancestor index: one row per (member, ancestor) pair within
MAX_DEPTH sponsor hops. Written once at enrollment, never updated.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refnet.models.base import Base

if TYPE_CHECKING:
    from refnet.models.member import Member


class ReferralEdge(Base):
    """ReferralEdge entity."""

    __tablename__ = "referral_edges"
    __table_args__ = (
        UniqueConstraint(
            "member_id",
            "generation_distance",
            name="uq_referral_edges_member_distance",
        ),
        CheckConstraint(
            "member_id <> ancestor_id", name="check_edge_not_self"
        ),
        CheckConstraint(
            "generation_distance >= 1", name="check_edge_distance_positive"
        ),
        Index(
            "idx_referral_edges_ancestor_distance",
            "ancestor_id",
            "generation_distance",
        ),
    )

    member_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), primary_key=True
    )
    ancestor_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"), primary_key=True
    )
    generation_distance: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    # Relationships
    member: Mapped["Member"] = relationship(
        "Member", foreign_keys=[member_id]
    )
    ancestor: Mapped["Member"] = relationship(
        "Member", foreign_keys=[ancestor_id]
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralEdge(member_id={self.member_id}, "
            f"ancestor_id={self.ancestor_id}, "
            f"distance={self.generation_distance})>"
        )
