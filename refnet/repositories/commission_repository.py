"""
CommissionRecord repository.

Data access layer for the append-only commission ledger.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.models.commission_record import CommissionRecord
from refnet.models.enums import CommissionStatus, CommissionType
from refnet.repositories.base import BaseRepository


class CommissionRepository(BaseRepository[CommissionRecord]):
    """CommissionRecord repository with ledger queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission repository."""
        super().__init__(CommissionRecord, session)

    async def find_by_event(self, event_id: str) -> list[CommissionRecord]:
        """
        Get all records written for a qualifying event.

        Args:
            event_id: Originating event ID (idempotency key)

        Returns:
            Records ordered by generation distance
        """
        stmt = (
            select(CommissionRecord)
            .where(CommissionRecord.originating_event_id == event_id)
            .order_by(CommissionRecord.generation_distance)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_records(
        self, items: list[dict[str, Any]]
    ) -> list[CommissionRecord]:
        """
        Insert a batch of records.

        A concurrent insert of the same (recipient, event, distance)
        raises IntegrityError on flush.
        """
        records = [CommissionRecord(**item) for item in items]
        self.session.add_all(records)
        await self.session.flush()
        return records

    async def transition_status(
        self,
        record_id: int,
        from_statuses: Iterable[CommissionStatus],
        to_status: CommissionStatus,
        settled_at: datetime | None = None,
        failure_reason: str | None = None,
    ) -> bool:
        """
        Compare-and-swap the status column.

        Args:
            record_id: Record ID
            from_statuses: Statuses the record must currently have
            to_status: New status
            settled_at: Settlement time for terminal statuses
            failure_reason: Reason for failed settlement

        Returns:
            True if this call moved the record
        """
        values: dict[str, Any] = {"status": to_status.value}
        if settled_at is not None:
            values["settled_at"] = settled_at
        if failure_reason is not None:
            values["failure_reason"] = failure_reason

        stmt = (
            update(CommissionRecord)
            .where(
                CommissionRecord.id == record_id,
                CommissionRecord.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def sum_amount(
        self,
        recipient_id: str,
        status: CommissionStatus,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Decimal:
        """
        Sum record amounts for a recipient.

        Args:
            recipient_id: Recipient member ID
            status: Record status to include
            start: Inclusive lower bound on created_at
            end: Inclusive upper bound on created_at

        Returns:
            Sum of amounts (0 if none)
        """
        stmt = select(
            func.coalesce(func.sum(CommissionRecord.amount), 0)
        ).where(
            CommissionRecord.recipient_id == recipient_id,
            CommissionRecord.status == status.value,
        )
        if start is not None:
            stmt = stmt.where(CommissionRecord.created_at >= start)
        if end is not None:
            stmt = stmt.where(CommissionRecord.created_at <= end)

        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def sum_by_distance(
        self,
        recipient_id: str,
        status: CommissionStatus,
        end: datetime | None = None,
    ) -> dict[int, Decimal]:
        """Sum record amounts per generation distance."""
        stmt = (
            select(
                CommissionRecord.generation_distance,
                func.sum(CommissionRecord.amount),
            )
            .where(
                CommissionRecord.recipient_id == recipient_id,
                CommissionRecord.status == status.value,
            )
            .group_by(CommissionRecord.generation_distance)
            .order_by(CommissionRecord.generation_distance)
        )
        if end is not None:
            stmt = stmt.where(CommissionRecord.created_at <= end)

        result = await self.session.execute(stmt)
        return {
            distance: Decimal(str(total or 0))
            for distance, total in result.all()
        }

    async def amounts_between(
        self,
        recipient_id: str,
        status: CommissionStatus,
        start: datetime | None,
        end: datetime,
    ) -> list[tuple[datetime, Decimal]]:
        """
        Get (created_at, amount) of records in a time range.

        Bucketing happens in Python so the same code serves every dialect.
        """
        stmt = (
            select(CommissionRecord.created_at, CommissionRecord.amount)
            .where(
                CommissionRecord.recipient_id == recipient_id,
                CommissionRecord.status == status.value,
                CommissionRecord.created_at <= end,
            )
            .order_by(CommissionRecord.created_at)
        )
        if start is not None:
            stmt = stmt.where(CommissionRecord.created_at >= start)

        result = await self.session.execute(stmt)
        return [(created_at, amount) for created_at, amount in result.all()]

    async def ledger_rows(
        self, recipient_id: str
    ) -> list[tuple[datetime, str, Decimal]]:
        """Get (created_at, status, amount) of every record for a recipient."""
        stmt = select(
            CommissionRecord.created_at,
            CommissionRecord.status,
            CommissionRecord.amount,
        ).where(CommissionRecord.recipient_id == recipient_id)
        result = await self.session.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def find_for_recipient(
        self,
        recipient_id: str,
        status: CommissionStatus | None = None,
        generation_distance: int | None = None,
        commission_type: CommissionType | None = None,
        limit: int | None = None,
    ) -> list[CommissionRecord]:
        """
        Commission history for a recipient, newest first.

        Args:
            recipient_id: Recipient member ID
            status: Optional status filter
            generation_distance: Optional distance filter
            commission_type: Optional type filter
            limit: Max number of results

        Returns:
            List of records
        """
        stmt = (
            select(CommissionRecord)
            .where(CommissionRecord.recipient_id == recipient_id)
            .order_by(CommissionRecord.created_at.desc(), CommissionRecord.id.desc())
        )
        if status is not None:
            stmt = stmt.where(CommissionRecord.status == status.value)
        if generation_distance is not None:
            stmt = stmt.where(
                CommissionRecord.generation_distance == generation_distance
            )
        if commission_type is not None:
            stmt = stmt.where(
                CommissionRecord.commission_type == commission_type.value
            )
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
