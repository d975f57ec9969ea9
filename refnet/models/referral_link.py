"""
ReferralLink model.

Shareable campaign link that resolves to its owner's sponsorship.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from refnet.models.base import Base

if TYPE_CHECKING:
    from refnet.models.member import Member


class ReferralLink(Base):
    """ReferralLink entity. Mutated only by click-count increments."""

    __tablename__ = "referral_links"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    campaign_label: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    link_code: Mapped[str] = mapped_column(
        String(16), unique=True, index=True, nullable=False
    )
    click_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    owner: Mapped["Member"] = relationship(
        "Member", back_populates="referral_links"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralLink(id={self.id}, owner_id={self.owner_id}, "
            f"code={self.link_code}, clicks={self.click_count})>"
        )
