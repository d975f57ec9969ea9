"""
Commission rollups.

Monthly per-member aggregates of the commission ledger, keyed by
(member_id, yyyymm). Every ledger write adjusts its rollup in the same
transaction, so a rollup always equals a scan of the rows it covers:

    earned_total  = sum(amount) of completed records created in the month
    pending_total = sum(amount) of pending records created in the month
    record_count  = number of records created in the month
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.constants import MONEY_SCALE
from refnet.models.commission_rollup import CommissionRollup
from refnet.models.enums import CommissionStatus
from refnet.repositories.commission_repository import CommissionRepository
from refnet.repositories.commission_rollup_repository import (
    CommissionRollupRepository,
)
from refnet.utils.datetime_utils import period_key
from refnet.utils.exceptions import RollupMismatch


@dataclass(frozen=True)
class PeriodTotals:
    """Aggregate for one member and month."""

    period: int
    earned_total: Decimal
    pending_total: Decimal
    record_count: int

    def normalized(self) -> tuple[int, Decimal, Decimal, int]:
        return (
            self.period,
            Decimal(self.earned_total).quantize(MONEY_SCALE),
            Decimal(self.pending_total).quantize(MONEY_SCALE),
            self.record_count,
        )


class CommissionRollupService:
    """Maintains and verifies monthly commission rollups."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rollup service."""
        self.session = session
        self.rollup_repo = CommissionRollupRepository(session)
        self.commission_repo = CommissionRepository(session)

    async def apply(
        self,
        member_id: str,
        period: int,
        earned_delta: Decimal = Decimal("0"),
        pending_delta: Decimal = Decimal("0"),
        count_delta: int = 0,
    ) -> None:
        """
        Add deltas to a member's rollup for a period.

        Creates the row if missing, then increments atomically.
        """
        await self.rollup_repo.ensure_row(member_id, period)
        await self.rollup_repo.increment(
            member_id, period, earned_delta, pending_delta, count_delta
        )

    async def record_created(
        self, member_id: str, created_at: datetime, amount: Decimal
    ) -> None:
        """New pending record."""
        await self.apply(
            member_id,
            period_key(created_at),
            pending_delta=amount,
            count_delta=1,
        )

    async def record_transitioned(
        self,
        member_id: str,
        created_at: datetime,
        amount: Decimal,
        from_status: CommissionStatus,
        to_status: CommissionStatus,
    ) -> None:
        """Move a record's amount between the pending and earned totals."""
        pending_delta = Decimal("0")
        earned_delta = Decimal("0")
        if from_status == CommissionStatus.PENDING:
            pending_delta -= amount
        if to_status == CommissionStatus.COMPLETED:
            earned_delta += amount

        if pending_delta or earned_delta:
            await self.apply(
                member_id,
                period_key(created_at),
                earned_delta=earned_delta,
                pending_delta=pending_delta,
            )

    async def totals(self, member_id: str) -> list[PeriodTotals]:
        """Stored rollups for a member, ordered by period."""
        rows = await self.rollup_repo.for_member(member_id)
        return [_from_row(row) for row in rows]

    async def scan(self, member_id: str) -> list[PeriodTotals]:
        """Recompute a member's rollups from the ledger."""
        earned: dict[int, Decimal] = defaultdict(Decimal)
        pending: dict[int, Decimal] = defaultdict(Decimal)
        counts: dict[int, int] = defaultdict(int)

        for created_at, status, amount in await self.commission_repo.ledger_rows(
            member_id
        ):
            period = period_key(created_at)
            counts[period] += 1
            if status == CommissionStatus.COMPLETED:
                earned[period] += amount
            elif status == CommissionStatus.PENDING:
                pending[period] += amount

        return [
            PeriodTotals(
                period=period,
                earned_total=earned[period],
                pending_total=pending[period],
                record_count=counts[period],
            )
            for period in sorted(counts)
        ]

    async def verify(self, member_id: str) -> list[PeriodTotals]:
        """
        Compare stored rollups with a full ledger scan.

        Returns:
            The verified totals

        Raises:
            RollupMismatch: If any period differs
        """
        stored = {
            totals.period: totals.normalized()
            for totals in await self.totals(member_id)
            if totals.record_count
        }
        scanned = await self.scan(member_id)
        expected = {totals.period: totals.normalized() for totals in scanned}

        if stored != expected:
            mismatched = sorted(
                period
                for period in stored.keys() | expected.keys()
                if stored.get(period) != expected.get(period)
            )
            logger.error(
                f"Rollup mismatch for member {member_id}",
                extra={"member_id": member_id, "periods": mismatched},
            )
            raise RollupMismatch(
                f"Rollups of member {member_id} differ from the ledger "
                f"in periods {mismatched}",
                member_id=member_id,
                periods=mismatched,
            )
        return scanned

    async def rebuild(self, member_id: str) -> list[PeriodTotals]:
        """Replace a member's rollups with a fresh scan."""
        scanned = await self.scan(member_id)
        await self.rollup_repo.replace_for_member(
            member_id,
            {
                totals.period: (
                    totals.earned_total,
                    totals.pending_total,
                    totals.record_count,
                )
                for totals in scanned
            },
        )
        logger.info(
            f"Rollups rebuilt for member {member_id}",
            extra={"member_id": member_id, "periods": len(scanned)},
        )
        return scanned


def _from_row(row: CommissionRollup) -> PeriodTotals:
    return PeriodTotals(
        period=row.period,
        earned_total=row.earned_total,
        pending_total=row.pending_total,
        record_count=row.record_count,
    )
