"""
Commission settlement.

Moves commission records strictly forward through their lifecycle and
applies the narrower balance adjustment of each settlement. Amounts are
taken from the record, never re-derived.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.commission_record import CommissionRecord
from refnet.models.enums import CommissionStatus, SettlementOutcome
from refnet.repositories.commission_repository import CommissionRepository
from refnet.services.ledger.rollups import CommissionRollupService
from refnet.services.member import MemberService
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import InvalidStatusTransition, RecordNotFound


@dataclass
class SettlementResult:
    """Record after a status change; changed is False for idempotent no-ops."""

    record: CommissionRecord
    changed: bool


class CommissionSettlement:
    """Applies settlement outcomes to commission records."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize settlement service."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.commission_repo = CommissionRepository(session)
        self.members = MemberService(session, self.config, clock)
        self.rollups = CommissionRollupService(session)

    async def mark_processing(self, record_id: int) -> SettlementResult:
        """
        Move a pending record to processing.

        A record already processing is left unchanged.

        Raises:
            RecordNotFound: Unknown record
            InvalidStatusTransition: Record is already settled
        """
        record = await self._get_record(record_id)
        current = CommissionStatus(record.status)

        if current == CommissionStatus.PROCESSING:
            return SettlementResult(record=record, changed=False)
        if current != CommissionStatus.PENDING:
            raise InvalidStatusTransition(
                f"Record {record_id} is {current.value}, cannot start processing",
                record_id=record_id,
                status=current.value,
            )

        moved = await self.commission_repo.transition_status(
            record_id,
            [CommissionStatus.PENDING],
            CommissionStatus.PROCESSING,
        )
        if not moved:
            # Lost a race with another transition
            record = await self._get_record(record_id)
            if record.status == CommissionStatus.PROCESSING:
                return SettlementResult(record=record, changed=False)
            raise InvalidStatusTransition(
                f"Record {record_id} is {record.status}, cannot start processing",
                record_id=record_id,
                status=record.status,
            )

        await self.rollups.record_transitioned(
            record.recipient_id,
            record.created_at,
            record.amount,
            CommissionStatus.PENDING,
            CommissionStatus.PROCESSING,
        )

        record = await self._get_record(record_id)
        logger.info(
            "Commission processing",
            extra={"record_id": record_id, "recipient_id": record.recipient_id},
        )
        return SettlementResult(record=record, changed=True)

    async def settle(
        self,
        record_id: int,
        outcome: SettlementOutcome,
        failure_reason: str | None = None,
    ) -> SettlementResult:
        """
        Finalize a record as completed or failed.

        completed moves the amount from pending to available; failed
        reverts pending and lifetime earned. Settling a settled record
        with the same outcome is a no-op.

        Args:
            record_id: Commission record ID
            outcome: Settlement outcome
            failure_reason: Optional reason for failed settlements

        Returns:
            SettlementResult

        Raises:
            RecordNotFound: Unknown record
            InvalidStatusTransition: Record already settled differently
            BalanceInvariantBroken: Recipient balances no longer add up
        """
        outcome = SettlementOutcome(outcome)
        record = await self._get_record(record_id)
        current = CommissionStatus(record.status)

        if current.is_terminal:
            return self._settled_result(record, outcome)

        if outcome == SettlementOutcome.COMPLETED:
            failure_reason = None
        elif failure_reason:
            failure_reason = failure_reason[:255]

        moved = await self.commission_repo.transition_status(
            record_id,
            [CommissionStatus.PENDING, CommissionStatus.PROCESSING],
            outcome.status,
            settled_at=self.clock(),
            failure_reason=failure_reason,
        )
        if not moved:
            # Settled concurrently
            record = await self._get_record(record_id)
            return self._settled_result(record, outcome)

        await self.members.apply_settlement(
            record.recipient_id, record.amount, outcome
        )
        await self.rollups.record_transitioned(
            record.recipient_id,
            record.created_at,
            record.amount,
            current,
            outcome.status,
        )
        await self.members.verify_member_balances(record.recipient_id)

        record = await self._get_record(record_id)
        logger.info(
            "Commission settled",
            extra={
                "record_id": record_id,
                "recipient_id": record.recipient_id,
                "outcome": outcome.value,
                "amount": str(record.amount),
            },
        )
        return SettlementResult(record=record, changed=True)

    def _settled_result(
        self, record: CommissionRecord, outcome: SettlementOutcome
    ) -> SettlementResult:
        if record.status == outcome.status:
            logger.debug(
                "Settlement already applied",
                extra={"record_id": record.id, "outcome": outcome.value},
            )
            return SettlementResult(record=record, changed=False)

        logger.warning(
            "Settlement rejected: conflicting outcome",
            extra={
                "record_id": record.id,
                "status": record.status,
                "outcome": outcome.value,
            },
        )
        raise InvalidStatusTransition(
            f"Record {record.id} is already {record.status}, "
            f"cannot settle as {outcome.value}",
            record_id=record.id,
            status=record.status,
        )

    async def _get_record(self, record_id: int) -> CommissionRecord:
        record = await self.commission_repo.get_by_id(record_id, refresh=True)
        if record is None:
            raise RecordNotFound(
                f"Commission record {record_id} not found", record_id=record_id
            )
        return record
