"""
Commission distribution engine.

Consumes qualifying events, walks the ancestor chain, applies the rate
schedule and writes the ledger rows and balance credits of one event as
a single batch inside the caller's transaction.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.commission_record import CommissionRecord
from refnet.models.enums import CommissionStatus, MemberStatus
from refnet.repositories.commission_repository import CommissionRepository
from refnet.services.commission.calculator import plan_distribution
from refnet.services.commission.events import QualifyingEvent
from refnet.services.ledger.rollups import CommissionRollupService
from refnet.services.member import MemberService
from refnet.services.referral.chain_manager import ReferralGraphManager
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import MalformedEvent, MemberNotFound, UnknownEvent


@dataclass
class DistributionResult:
    """
    Result of distributing one event.

    already_processed signals a no-op success: the event was applied
    by an earlier delivery and records holds that delivery's rows unchanged.
    """

    event_id: str
    records: list[CommissionRecord] = field(default_factory=list)
    already_processed: bool = False

    @property
    def recipients(self) -> list[str]:
        return [record.recipient_id for record in self.records]


class DistributionEngine:
    """Distributes qualifying events up the sponsor chain."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize distribution engine.

        Args:
            session: Database session
            config: Settings (defaults to global settings)
            clock: Source of the current time
        """
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.commission_repo = CommissionRepository(session)
        self.graph = ReferralGraphManager(session, self.config, clock)
        self.members = MemberService(session, self.config, clock)
        self.rollups = CommissionRollupService(session)

    async def distribute(self, event: QualifyingEvent) -> DistributionResult:
        """
        Distribute an event's commissions to the acting member's ancestors.

        Writes happen in the session's transaction and are all-or-nothing
        when the caller commits or rolls back.

        Args:
            event: Qualifying event

        Returns:
            DistributionResult with the event's records

        Raises:
            MalformedEvent: Unsupported currency
            UnknownEvent: Acting member is not enrolled
        """
        places = self._currency_places(event)

        existing = await self.find_event_records(event.event_id)
        if existing:
            logger.info(
                "Event already processed",
                extra={
                    "event_id": event.event_id,
                    "records": len(existing),
                },
            )
            return DistributionResult(
                event_id=event.event_id,
                records=existing,
                already_processed=True,
            )

        try:
            ancestors = await self.graph.ancestors_of(event.acting_member_id)
        except MemberNotFound as e:
            logger.warning(
                "Event rejected: unknown acting member",
                extra={
                    "event_id": event.event_id,
                    "member_id": event.acting_member_id,
                },
            )
            raise UnknownEvent(
                f"Member {event.acting_member_id} is not enrolled",
                event_id=event.event_id,
                member_id=event.acting_member_id,
            ) from e

        if not self.config.suspended_members_accrue:
            ancestors = [
                (member, distance)
                for member, distance in ancestors
                if member.status == MemberStatus.ACTIVE
            ]

        shares = plan_distribution(
            event.base_amount,
            [(member.id, distance) for member, distance in ancestors],
            self.config.commission_rates,
            places,
        )
        if not shares:
            logger.debug(
                "No commissions owed",
                extra={
                    "event_id": event.event_id,
                    "member_id": event.acting_member_id,
                    "chain_length": len(ancestors),
                },
            )
            return DistributionResult(event_id=event.event_id)

        now = self.clock()
        records = await self.commission_repo.add_records([
            {
                "recipient_id": share.recipient_id,
                "source_member_id": event.acting_member_id,
                "originating_event_id": event.event_id,
                "event_kind": event.kind.value,
                "commission_type": share.commission_type.value,
                "generation_distance": share.generation_distance,
                "base_amount": event.base_amount,
                "amount": share.amount,
                "rate_applied": share.rate,
                "currency": event.currency,
                "status": CommissionStatus.PENDING.value,
                "created_at": now,
            }
            for share in shares
        ])

        for share in shares:
            await self.members.credit_pending(share.recipient_id, share.amount)
            await self.rollups.record_created(
                share.recipient_id, now, share.amount
            )

            logger.debug(
                "Commission credited",
                extra={
                    "event_id": event.event_id,
                    "recipient_id": share.recipient_id,
                    "distance": share.generation_distance,
                    "amount": str(share.amount),
                },
            )

        logger.info(
            "Commission distributed",
            extra={
                "event_id": event.event_id,
                "member_id": event.acting_member_id,
                "records": len(records),
                "total": str(sum(share.amount for share in shares)),
            },
        )
        return DistributionResult(event_id=event.event_id, records=records)

    async def find_event_records(
        self, event_id: str
    ) -> list[CommissionRecord]:
        """Records already written for an event."""
        return await self.commission_repo.find_by_event(event_id)

    def _currency_places(self, event: QualifyingEvent) -> int:
        places = self.config.precision_for(event.currency)
        if places is None or event.currency != self.config.base_currency:
            logger.warning(
                "Event rejected: unsupported currency",
                extra={"event_id": event.event_id, "currency": event.currency},
            )
            raise MalformedEvent(
                f"Unsupported currency {event.currency}",
                event_id=event.event_id,
                currency=event.currency,
            )
        return places
