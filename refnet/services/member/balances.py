"""
Member balance functionality.

Every balance change is an atomic SQL increment. The balance invariant

    available + pending + lifetime_withdrawn == lifetime_earned

is preserved by construction: each operation moves the same amount between
two sides of the equation.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.enums import MemberStatus, SettlementOutcome
from refnet.models.member import Member
from refnet.repositories.member_repository import MemberRepository
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import (
    BalanceInvariantBroken,
    InsufficientBalance,
    MemberNotFound,
    ValidationError,
    WithdrawalBlocked,
)


@dataclass
class BalanceAuditReport:
    """Result of a balance audit over many members."""

    checked: int = 0
    violations: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


class MemberBalanceMixin:
    """
    Mixin for member balance functionality.

    Credits, settlement adjustments, withdrawals and invariant checks.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize member balance mixin."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.member_repo = MemberRepository(session)

    async def credit_pending(self, member_id: str, amount: Decimal) -> None:
        """
        Credit a new commission to pending and lifetime earned.

        Args:
            member_id: Recipient member ID
            amount: Commission amount (non-negative)

        Raises:
            MemberNotFound: If the member does not exist
        """
        _require_non_negative(amount)
        updated = await self.member_repo.increment_balances(
            member_id,
            pending_balance=amount,
            lifetime_earned=amount,
        )
        if not updated:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )

    async def apply_settlement(
        self,
        member_id: str,
        amount: Decimal,
        outcome: SettlementOutcome,
    ) -> None:
        """
        Apply a settled commission to balances.

        completed: pending -> available
        failed: pending and lifetime earned are reverted

        Args:
            member_id: Recipient member ID
            amount: Amount recorded on the commission record
            outcome: Settlement outcome
        """
        _require_non_negative(amount)
        if outcome == SettlementOutcome.COMPLETED:
            deltas = {
                "pending_balance": -amount,
                "available_balance": amount,
            }
        else:
            deltas = {
                "pending_balance": -amount,
                "lifetime_earned": -amount,
            }

        updated = await self.member_repo.increment_balances(member_id, **deltas)
        if not updated:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )

    async def record_withdrawal(
        self, member_id: str, amount: Decimal
    ) -> Member:
        """
        Record a withdrawal completed by the external payout rail.

        Args:
            member_id: Member ID
            amount: Withdrawn amount (positive)

        Returns:
            Member with refreshed balances

        Raises:
            WithdrawalBlocked: If the member is suspended
            InsufficientBalance: If available balance is too low
        """
        if amount <= 0:
            raise ValidationError(
                "Withdrawal amount must be positive", amount=amount
            )

        applied = await self.member_repo.withdraw_available(member_id, amount)
        member = await self.member_repo.get_by_id(member_id, refresh=True)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )

        if not applied:
            if member.status != MemberStatus.ACTIVE:
                raise WithdrawalBlocked(
                    f"Member {member_id} is suspended", member_id=member_id
                )
            raise InsufficientBalance(
                f"Available balance {member.available_balance} "
                f"does not cover {amount}",
                member_id=member_id,
            )

        logger.info(
            f"Withdrawal recorded for member {member_id}: {amount}",
            extra={"member_id": member_id, "amount": str(amount)},
        )
        return member

    def verify_balance_invariant(self, member: Member) -> None:
        """
        Check available + pending + withdrawn == lifetime earned.

        Raises:
            BalanceInvariantBroken: If the equation does not hold
        """
        if not member.balance_invariant_holds:
            raise BalanceInvariantBroken(
                f"Balance invariant broken for member {member.id}: "
                f"available={member.available_balance} "
                f"pending={member.pending_balance} "
                f"withdrawn={member.lifetime_withdrawn} "
                f"earned={member.lifetime_earned}",
                member_id=member.id,
            )

    async def verify_member_balances(self, member_id: str) -> Member:
        """Reload a member and verify the balance invariant."""
        member = await self.member_repo.get_by_id(member_id, refresh=True)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )
        self.verify_balance_invariant(member)
        return member

    async def audit_balances(
        self,
        member_ids: list[str] | None = None,
        page_size: int = 500,
    ) -> BalanceAuditReport:
        """
        Check the balance invariant for many members.

        Args:
            member_ids: Members to check (all members if None)
            page_size: Page size for the full scan

        Returns:
            Report listing members whose balances do not add up
        """
        report = BalanceAuditReport()

        if member_ids is not None:
            pages = [await self.member_repo.get_many(member_ids)]
        else:
            pages = []
            after_id = None
            while True:
                page = await self.member_repo.list_page(after_id, page_size)
                if not page:
                    break
                pages.append(page)
                after_id = page[-1].id

        for page in pages:
            for member in page:
                report.checked += 1
                if not member.balance_invariant_holds:
                    report.violations.append(member.id)

        if report.violations:
            logger.error(
                f"Balance audit found {len(report.violations)} broken members",
                extra={"violations": report.violations},
            )
        else:
            logger.info(f"Balance audit passed for {report.checked} members")
        return report


def _require_non_negative(amount: Decimal) -> None:
    if amount < 0:
        raise ValidationError("Amount must be non-negative", amount=amount)
