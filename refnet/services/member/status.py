"""
Member status functionality.

Members are never deleted; suspension is a soft status change that blocks
withdrawal.
"""

from collections.abc import Callable
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.enums import MemberStatus
from refnet.models.member import Member
from refnet.repositories.member_repository import MemberRepository
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import MemberNotFound


class MemberStatusMixin:
    """Mixin for suspending and reactivating members."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize member status mixin."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.member_repo = MemberRepository(session)

    async def suspend(self, member_id: str) -> Member:
        """
        Suspend a member.

        Args:
            member_id: Member ID

        Returns:
            Updated member
        """
        return await self._set_status(
            member_id, MemberStatus.SUSPENDED, self.clock()
        )

    async def reactivate(self, member_id: str) -> Member:
        """
        Reactivate a suspended member.

        Args:
            member_id: Member ID

        Returns:
            Updated member
        """
        return await self._set_status(member_id, MemberStatus.ACTIVE, None)

    async def _set_status(
        self,
        member_id: str,
        status: MemberStatus,
        suspended_at: datetime | None,
    ) -> Member:
        updated = await self.member_repo.set_status(
            member_id, status, suspended_at
        )
        if not updated:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )

        member = await self.member_repo.get_by_id(member_id, refresh=True)
        logger.info(
            f"Member {member_id} status set to {status.value}",
            extra={"member_id": member_id, "status": status.value},
        )
        return member
