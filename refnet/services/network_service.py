"""
Referral network service.

In-process binding of the exposed operation surface. Every operation runs
in its own transaction bounded by transaction_timeout_seconds; store
errors are translated to the error taxonomy and change notifications are
published only after the transaction commits.

Usage:
    service = ReferralNetworkService()
    await service.start()

    root = await service.enroll("alice")
    member = await service.enroll("bob", sponsor_code=root.referral_code)
    result = await service.distribute(
        QualifyingEvent("tx-1", member.id, Decimal("1000"))
    )
    stats = await service.stats_for(root.id)

    await service.stop()
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from refnet.config.settings import Settings, settings
from refnet.models.commission_record import CommissionRecord
from refnet.models.enums import (
    CommissionStatus,
    CommissionType,
    SettlementOutcome,
)
from refnet.models.member import Member
from refnet.models.referral_link import ReferralLink
from refnet.repositories.commission_repository import CommissionRepository
from refnet.services.commission import (
    CommissionSettlement,
    DistributionEngine,
    DistributionResult,
    QualifyingEvent,
)
from refnet.services.ledger import (
    CommissionRollupService,
    CommissionStats,
    CommissionStatsService,
    PeriodTotals,
    SeriesPoint,
)
from refnet.services.member import BalanceAuditReport, MemberService
from refnet.services.notification import (
    ChangeNotification,
    CommissionCreated,
    CommissionUpdated,
    EdgeAdded,
    NotificationHub,
    NotificationTopic,
    RedisNotificationRelay,
    Subscription,
)
from refnet.services.referral import (
    NetworkStats,
    ReferralGraphManager,
    ReferralLinkManager,
    ReferralQueryManager,
)
from refnet.utils.datetime_utils import utc_now
from refnet.utils.db_decorators import translate_store_errors
from refnet.utils.exceptions import (
    CodeGenerationExhausted,
    DuplicateMember,
    InvalidStatusTransition,
    MemberNotFound,
    ValidationError,
)


class ReferralNetworkService:
    """Facade over the referral graph, commission engine and ledger."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: Settings | None = None,
        hub: NotificationHub | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize service.

        Args:
            session_maker: Session factory (defaults to the configured database)
            config: Settings (defaults to global settings)
            hub: Notification hub (created if None)
            clock: Source of the current time
        """
        if session_maker is None:
            from refnet.config.database import async_session_maker

            session_maker = async_session_maker

        self.session_maker = session_maker
        self.config = config or settings
        self.clock = clock
        self.hub = hub or NotificationHub(self.config)
        self.logger = logger.bind(service=self.__class__.__name__)

    async def start(self) -> None:
        """Start the notification hub (and relay when enabled)."""
        if self.config.notification_relay_enabled and self.hub.relay is None:
            RedisNotificationRelay(self.hub, config=self.config)
        await self.hub.start()

    async def stop(self) -> None:
        """Stop the notification hub and end all subscriptions."""
        await self.hub.stop()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with asyncio.timeout(self.config.transaction_timeout_seconds):
            async with self.session_maker() as session, session.begin():
                yield session

    def _publish(self, notifications: Iterable[ChangeNotification]) -> None:
        self.hub.publish_many(notifications)

    # ====================================================================
    # Referral graph
    # ====================================================================

    @translate_store_errors
    async def enroll(
        self, candidate_id: str, sponsor_code: str | None = None
    ) -> Member:
        """
        Enroll a member, optionally under a sponsor code.

        Commits before returning, so the member can source distributions.
        A referral code taken by a concurrent enrollment between the
        uniqueness check and commit is regenerated in a new transaction.
        """
        attempts = self.config.code_generation_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self._transaction() as session:
                    graph = ReferralGraphManager(session, self.config, self.clock)
                    member = await graph.enroll(candidate_id, sponsor_code)
                    ancestors = await graph.ancestors_of(member.id)
                break
            except IntegrityError as e:
                if await self._member_exists(candidate_id):
                    raise DuplicateMember(
                        f"Member {candidate_id} is already enrolled",
                        member_id=candidate_id,
                    ) from e
                if attempt == attempts:
                    raise CodeGenerationExhausted(
                        f"Referral code kept colliding after {attempts} attempts",
                        member_id=candidate_id,
                    ) from e
                self.logger.warning(
                    f"Referral code collided on commit, retrying ({attempt}/{attempts})",
                    extra={"member_id": candidate_id},
                )

        self._publish(
            EdgeAdded(
                member_id=ancestor.id,
                new_member_id=member.id,
                generation_distance=distance,
                occurred_at=self.clock(),
            )
            for ancestor, distance in ancestors
        )
        return member

    @translate_store_errors
    async def enroll_via_link(self, candidate_id: str, link_code: str) -> Member:
        """Enroll a member under the owner of a campaign link."""
        async with self._transaction() as session:
            owner = await ReferralLinkManager(
                session, self.config, self.clock
            ).resolve_link(link_code)
            sponsor_code = owner.referral_code

        return await self.enroll(candidate_id, sponsor_code)

    @translate_store_errors
    async def get_member(self, member_id: str) -> Member:
        """Get a member with current balances."""
        async with self._transaction() as session:
            return await MemberService(
                session, self.config, self.clock
            ).get_member(member_id)

    @translate_store_errors
    async def ancestors_of(self, member_id: str) -> list[tuple[Member, int]]:
        """Ancestors of a member as (member, distance), nearest first."""
        async with self._transaction() as session:
            return await ReferralGraphManager(
                session, self.config, self.clock
            ).ancestors_of(member_id)

    @translate_store_errors
    async def descendants_of(
        self, member_id: str, generation: int | None = None
    ) -> list[Member]:
        """Descendants within max_depth, optionally one generation."""
        async with self._transaction() as session:
            return await ReferralGraphManager(
                session, self.config, self.clock
            ).descendants_of(member_id, generation)

    @translate_store_errors
    async def direct_referrals(self, member_id: str) -> list[Member]:
        """Members sponsored directly by a member."""
        async with self._transaction() as session:
            return await ReferralGraphManager(
                session, self.config, self.clock
            ).direct_referrals(member_id)

    @translate_store_errors
    async def network_stats(self, member_id: str) -> NetworkStats:
        """Downline counts per generation."""
        async with self._transaction() as session:
            return await ReferralQueryManager(
                session, self.config
            ).network_stats(member_id)

    # ====================================================================
    # Referral links
    # ====================================================================

    @translate_store_errors
    async def create_link(
        self, owner_id: str, campaign_label: str | None = None
    ) -> ReferralLink:
        """
        Create a campaign link.

        A link code taken by a concurrent insert between the uniqueness
        check and commit is regenerated in a new transaction.
        """
        attempts = self.config.code_generation_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self._transaction() as session:
                    return await ReferralLinkManager(
                        session, self.config, self.clock
                    ).create_link(owner_id, campaign_label)
            except IntegrityError as e:
                if attempt == attempts:
                    raise CodeGenerationExhausted(
                        f"Link code kept colliding after {attempts} attempts",
                        owner_id=owner_id,
                    ) from e
                self.logger.warning(
                    f"Link code collided on commit, retrying ({attempt}/{attempts})",
                    extra={"owner_id": owner_id},
                )

    @translate_store_errors
    async def record_click(self, link_code: str) -> ReferralLink:
        """Count a click on a campaign link."""
        async with self._transaction() as session:
            return await ReferralLinkManager(
                session, self.config, self.clock
            ).record_click(link_code)

    @translate_store_errors
    async def resolve_link(self, link_code: str) -> Member:
        """Owner of a campaign link."""
        async with self._transaction() as session:
            return await ReferralLinkManager(
                session, self.config, self.clock
            ).resolve_link(link_code)

    @translate_store_errors
    async def links_for(self, owner_id: str) -> list[ReferralLink]:
        """Campaign links of a member, newest first."""
        async with self._transaction() as session:
            return await ReferralLinkManager(
                session, self.config, self.clock
            ).links_for(owner_id)

    # ====================================================================
    # Commissions
    # ====================================================================

    @translate_store_errors
    async def distribute(
        self, event: QualifyingEvent | dict[str, Any]
    ) -> DistributionResult:
        """
        Distribute a qualifying event.

        Redelivery of a processed event returns the original records with
        already_processed set and changes nothing.
        """
        if not isinstance(event, QualifyingEvent):
            event = QualifyingEvent.from_payload(event)

        try:
            async with self._transaction() as session:
                result = await DistributionEngine(
                    session, self.config, self.clock
                ).distribute(event)
        except IntegrityError:
            # A concurrent delivery of the same event won the unique key
            async with self._transaction() as session:
                records = await DistributionEngine(
                    session, self.config, self.clock
                ).find_event_records(event.event_id)
            if not records:
                raise
            self.logger.info(
                "Concurrent delivery already processed event",
                extra={"event_id": event.event_id},
            )
            return DistributionResult(
                event_id=event.event_id,
                records=records,
                already_processed=True,
            )

        if not result.already_processed:
            self._publish(
                CommissionCreated(
                    member_id=record.recipient_id,
                    record_id=record.id,
                    event_id=record.originating_event_id,
                    amount=record.amount,
                    generation_distance=record.generation_distance,
                    occurred_at=self.clock(),
                )
                for record in result.records
            )
        return result

    @translate_store_errors
    async def mark_processing(self, record_id: int) -> CommissionRecord:
        """Move a pending commission record to processing."""
        async with self._transaction() as session:
            result = await CommissionSettlement(
                session, self.config, self.clock
            ).mark_processing(record_id)

        if result.changed:
            self._publish([self._record_updated(result.record)])
        return result.record

    @translate_store_errors
    async def settle(
        self,
        record_id: int,
        outcome: SettlementOutcome | str,
        failure_reason: str | None = None,
    ) -> CommissionRecord:
        """Finalize a commission record as completed or failed."""
        try:
            outcome = SettlementOutcome(outcome)
        except ValueError as e:
            raise InvalidStatusTransition(
                f"Unknown settlement outcome {outcome!r}", record_id=record_id
            ) from e

        async with self._transaction() as session:
            result = await CommissionSettlement(
                session, self.config, self.clock
            ).settle(record_id, outcome, failure_reason)

        if result.changed:
            self._publish([self._record_updated(result.record)])
        return result.record

    @translate_store_errors
    async def commissions_for(
        self,
        member_id: str,
        status: CommissionStatus | str | None = None,
        generation: int | None = None,
        commission_type: CommissionType | str | None = None,
        limit: int | None = None,
    ) -> list[CommissionRecord]:
        """Commission history of a member, newest first."""
        try:
            status = CommissionStatus(status) if status else None
            commission_type = (
                CommissionType(commission_type) if commission_type else None
            )
        except ValueError as e:
            raise ValidationError(
                f"Unknown history filter: {e}", member_id=member_id
            ) from e

        async with self._transaction() as session:
            await MemberService(session, self.config, self.clock).get_member(
                member_id
            )
            return await CommissionRepository(session).find_for_recipient(
                member_id,
                status=status,
                generation_distance=generation,
                commission_type=commission_type,
                limit=limit,
            )

    # ====================================================================
    # Members
    # ====================================================================

    @translate_store_errors
    async def record_withdrawal(self, member_id: str, amount: Decimal) -> Member:
        """Record a withdrawal paid out by the external rail."""
        try:
            amount = Decimal(str(amount))
        except InvalidOperation as e:
            raise ValidationError(
                f"Invalid withdrawal amount {amount!r}", member_id=member_id
            ) from e
        if not amount.is_finite():
            raise ValidationError(
                f"Invalid withdrawal amount {amount}", member_id=member_id
            )

        async with self._transaction() as session:
            members = MemberService(session, self.config, self.clock)
            member = await members.record_withdrawal(member_id, amount)
            members.verify_balance_invariant(member)
            return member

    @translate_store_errors
    async def suspend_member(self, member_id: str) -> Member:
        """Suspend a member (blocks withdrawal)."""
        async with self._transaction() as session:
            return await MemberService(
                session, self.config, self.clock
            ).suspend(member_id)

    @translate_store_errors
    async def reactivate_member(self, member_id: str) -> Member:
        """Reactivate a suspended member."""
        async with self._transaction() as session:
            return await MemberService(
                session, self.config, self.clock
            ).reactivate(member_id)

    @translate_store_errors
    async def audit_balances(
        self, member_ids: list[str] | None = None
    ) -> BalanceAuditReport:
        """Check the balance invariant for some or all members."""
        async with self._transaction() as session:
            return await MemberService(
                session, self.config, self.clock
            ).audit_balances(member_ids)

    # ====================================================================
    # Ledger statistics
    # ====================================================================

    @translate_store_errors
    async def stats_for(
        self, member_id: str, as_of: datetime | None = None
    ) -> CommissionStats:
        """Commission stats of a member as of a point in time."""
        async with self._transaction() as session:
            return await CommissionStatsService(
                session, self.config, self.clock
            ).stats_for(member_id, as_of)

    @translate_store_errors
    async def daily_series(
        self,
        member_id: str,
        window_days: int,
        as_of: datetime | None = None,
    ) -> list[SeriesPoint]:
        """Completed commissions per day over a window ending at as_of."""
        async with self._transaction() as session:
            return await CommissionStatsService(
                session, self.config, self.clock
            ).daily_series(member_id, window_days, as_of)

    @translate_store_errors
    async def monthly_series(
        self, member_id: str, as_of: datetime | None = None
    ) -> list[SeriesPoint]:
        """Completed commissions per month since enrollment."""
        async with self._transaction() as session:
            return await CommissionStatsService(
                session, self.config, self.clock
            ).monthly_series(member_id, as_of)

    @translate_store_errors
    async def verify_rollups(self, member_id: str) -> list[PeriodTotals]:
        """Check a member's monthly rollups against a ledger scan."""
        async with self._transaction() as session:
            await self._require_member(session, member_id)
            return await CommissionRollupService(session).verify(member_id)

    @translate_store_errors
    async def rebuild_rollups(self, member_id: str) -> list[PeriodTotals]:
        """Recompute a member's monthly rollups from the ledger."""
        async with self._transaction() as session:
            await self._require_member(session, member_id)
            return await CommissionRollupService(session).rebuild(member_id)

    # ====================================================================
    # Notifications
    # ====================================================================

    def subscribe(
        self,
        member_id: str,
        topics: Iterable[NotificationTopic | str] | None = None,
        maxsize: int | None = None,
    ) -> Subscription:
        """Live change notifications relevant to a member."""
        return self.hub.subscribe(member_id, topics, maxsize)

    def _record_updated(self, record: CommissionRecord) -> CommissionUpdated:
        return CommissionUpdated(
            member_id=record.recipient_id,
            record_id=record.id,
            status=record.status,
            occurred_at=self.clock(),
        )

    async def _member_exists(self, member_id: str) -> bool:
        async with self._transaction() as session:
            members = MemberService(session, self.config, self.clock)
            return await members.find_member(member_id) is not None

    async def _require_member(
        self, session: AsyncSession, member_id: str
    ) -> Member:
        member = await MemberService(
            session, self.config, self.clock
        ).find_member(member_id)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )
        return member
