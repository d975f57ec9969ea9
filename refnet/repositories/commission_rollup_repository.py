"""
CommissionRollup repository.

Data access layer for monthly ledger aggregates.
"""

from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.models.commission_rollup import CommissionRollup
from refnet.repositories.base import BaseRepository


class CommissionRollupRepository(BaseRepository[CommissionRollup]):
    """CommissionRollup repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission rollup repository."""
        super().__init__(CommissionRollup, session)

    async def ensure_row(self, member_id: str, period: int) -> None:
        """Create an empty rollup row unless one exists."""
        dialect = self.session.get_bind().dialect.name
        insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = (
            insert_fn(CommissionRollup)
            .values(
                member_id=member_id,
                period=period,
                earned_total=Decimal("0"),
                pending_total=Decimal("0"),
                record_count=0,
            )
            .on_conflict_do_nothing(
                index_elements=["member_id", "period"]
            )
        )
        await self.session.execute(stmt)

    async def increment(
        self,
        member_id: str,
        period: int,
        earned_delta: Decimal,
        pending_delta: Decimal,
        count_delta: int,
    ) -> None:
        """Atomically add deltas to an existing rollup row."""
        stmt = (
            update(CommissionRollup)
            .where(
                CommissionRollup.member_id == member_id,
                CommissionRollup.period == period,
            )
            .values(
                earned_total=CommissionRollup.earned_total + earned_delta,
                pending_total=CommissionRollup.pending_total + pending_delta,
                record_count=CommissionRollup.record_count + count_delta,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def for_member(self, member_id: str) -> list[CommissionRollup]:
        """Get a member's rollups ordered by period."""
        stmt = (
            select(CommissionRollup)
            .where(CommissionRollup.member_id == member_id)
            .order_by(CommissionRollup.period)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def replace_for_member(
        self,
        member_id: str,
        totals: dict[int, tuple[Decimal, Decimal, int]],
    ) -> list[CommissionRollup]:
        """
        Replace a member's rollups.

        Args:
            member_id: Member ID
            totals: period -> (earned_total, pending_total, record_count)

        Returns:
            New rollup rows
        """
        await self.session.execute(
            delete(CommissionRollup)
            .where(CommissionRollup.member_id == member_id)
            .execution_options(synchronize_session="fetch")
        )
        rows = [
            CommissionRollup(
                member_id=member_id,
                period=period,
                earned_total=earned,
                pending_total=pending,
                record_count=count,
            )
            for period, (earned, pending, count) in sorted(totals.items())
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows
