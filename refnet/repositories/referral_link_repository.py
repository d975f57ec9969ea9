"""
ReferralLink repository.

Data access layer for campaign referral links.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.models.referral_link import ReferralLink
from refnet.repositories.base import BaseRepository


class ReferralLinkRepository(BaseRepository[ReferralLink]):
    """ReferralLink repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral link repository."""
        super().__init__(ReferralLink, session)

    async def get_by_code(self, link_code: str) -> ReferralLink | None:
        """Get link by code (case-insensitive)."""
        return await self.get_by(link_code=link_code.strip().upper())

    async def increment_clicks(self, link_code: str) -> bool:
        """
        Atomically increment a link's click counter.

        Returns:
            True if the link exists
        """
        stmt = (
            update(ReferralLink)
            .where(ReferralLink.link_code == link_code.strip().upper())
            .values(click_count=ReferralLink.click_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def find_by_owner(self, owner_id: str) -> list[ReferralLink]:
        """Get an owner's links, newest first."""
        stmt = (
            select(ReferralLink)
            .where(ReferralLink.owner_id == owner_id)
            .order_by(ReferralLink.created_at.desc(), ReferralLink.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
