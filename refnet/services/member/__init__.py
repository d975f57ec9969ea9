"""
Member service module.

Provides the member registry: identity lookup, balances and status.

Structure:
- core.py: Member retrieval by ID and referral code
- balances.py: Atomic balance adjustments and invariant checks
- status.py: Suspension and reactivation

Usage:
    from refnet.services.member import MemberService

    member_service = MemberService(session)
    member = await member_service.get_member(member_id)
    await member_service.credit_pending(member_id, Decimal("10.00"))
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings
from refnet.services.member.balances import BalanceAuditReport, MemberBalanceMixin
from refnet.services.member.core import MemberServiceCore
from refnet.services.member.status import MemberStatusMixin
from refnet.utils.datetime_utils import utc_now


class MemberService(
    MemberServiceCore,
    MemberBalanceMixin,
    MemberStatusMixin,
):
    """
    Combined member service.

    Inherits from all member service mixins to provide complete functionality.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize member service with all mixins.

        Args:
            session: Database session
            config: Settings (defaults to global settings)
            clock: Source of the current time
        """
        MemberServiceCore.__init__(self, session, config, clock)
        MemberBalanceMixin.__init__(self, session, config, clock)
        MemberStatusMixin.__init__(self, session, config, clock)


__all__ = ["BalanceAuditReport", "MemberService"]
