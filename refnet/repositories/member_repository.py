"""
Member repository.

Data access layer for Member model. Balance changes are single-statement
atomic increments so concurrent writers never lose an update.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.models.enums import MemberStatus
from refnet.models.member import Member
from refnet.repositories.base import BaseRepository


class MemberRepository(BaseRepository[Member]):
    """Member repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize member repository."""
        super().__init__(Member, session)

    async def get_by_referral_code(self, code: str) -> Member | None:
        """
        Get member by referral code.

        Args:
            code: Referral code (case-insensitive)

        Returns:
            Member or None
        """
        return await self.get_by(referral_code=code.strip().upper())

    async def increment_balances(
        self, member_id: str, **deltas: Decimal
    ) -> bool:
        """
        Atomically add deltas to balance columns.

        Executes UPDATE members SET col = col + :delta for every column
        given, serialized by the store's row lock.

        Args:
            member_id: Member ID
            **deltas: Column name to signed delta

        Returns:
            True if the member row was updated
        """
        values: dict[str, Any] = {
            name: getattr(Member, name) + delta
            for name, delta in deltas.items()
        }
        stmt = (
            update(Member)
            .where(Member.id == member_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def withdraw_available(
        self, member_id: str, amount: Decimal
    ) -> bool:
        """
        Atomically move amount from available to lifetime withdrawn.

        Only updates an active member whose available balance covers the
        amount, so the check and the write cannot interleave with another
        withdrawal.

        Returns:
            True if the withdrawal was applied
        """
        stmt = (
            update(Member)
            .where(
                Member.id == member_id,
                Member.status == MemberStatus.ACTIVE.value,
                Member.available_balance >= amount,
            )
            .values(
                available_balance=Member.available_balance - amount,
                lifetime_withdrawn=Member.lifetime_withdrawn + amount,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def set_status(
        self,
        member_id: str,
        status: MemberStatus,
        suspended_at: datetime | None,
    ) -> bool:
        """Set member status."""
        stmt = (
            update(Member)
            .where(Member.id == member_id)
            .values(status=status.value, suspended_at=suspended_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_many(self, member_ids: list[str]) -> list[Member]:
        """Get members by IDs, ordered by ID."""
        if not member_ids:
            return []
        stmt = (
            select(Member)
            .where(Member.id.in_(member_ids))
            .order_by(Member.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_page(
        self, after_id: str | None = None, limit: int = 500
    ) -> list[Member]:
        """
        Keyset-paginated scan over all members ordered by ID.

        Args:
            after_id: Last ID of the previous page
            limit: Page size

        Returns:
            Next page of members
        """
        stmt = select(Member).order_by(Member.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(Member.id > after_id)
        result = await self.session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
