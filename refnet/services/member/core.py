"""
Core member service functionality.

Handles member retrieval.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.member import Member
from refnet.repositories.member_repository import MemberRepository
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import MemberNotFound


class MemberServiceCore:
    """
    Core member service.

    Provides member lookup by ID and referral code.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize member service core.

        Args:
            session: Database session
            config: Settings (defaults to global settings)
            clock: Source of the current time
        """
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.member_repo = MemberRepository(session)

    async def get_member(
        self, member_id: str, refresh: bool = False
    ) -> Member:
        """
        Get member by ID.

        Args:
            member_id: Member ID
            refresh: Reload balances from the store

        Returns:
            Member

        Raises:
            MemberNotFound: If no member has this ID
        """
        member = await self.member_repo.get_by_id(member_id, refresh=refresh)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )
        return member

    async def find_member(self, member_id: str) -> Member | None:
        """Get member by ID or None."""
        return await self.member_repo.get_by_id(member_id)

    async def get_by_referral_code(self, code: str) -> Member | None:
        """
        Get member by referral code.

        Args:
            code: Referral code

        Returns:
            Member or None
        """
        if not code or not code.strip():
            return None
        return await self.member_repo.get_by_referral_code(code)
