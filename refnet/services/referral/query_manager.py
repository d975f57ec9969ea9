"""
Referral network query module.

Aggregate counts over a member's downline.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.repositories.member_repository import MemberRepository
from refnet.repositories.referral_edge_repository import ReferralEdgeRepository
from refnet.utils.exceptions import MemberNotFound


@dataclass
class NetworkStats:
    """Downline counts for a member within the materialized depth."""

    member_id: str
    total_referrals: int = 0
    active_referrals: int = 0
    direct_referrals: int = 0
    generation_breakdown: dict[int, int] = field(default_factory=dict)


class ReferralQueryManager:
    """Manages referral network queries."""

    def __init__(
        self, session: AsyncSession, config: Settings | None = None
    ) -> None:
        """Initialize query manager."""
        self.session = session
        self.config = config or settings
        self.member_repo = MemberRepository(session)
        self.edge_repo = ReferralEdgeRepository(session)

    async def network_stats(self, member_id: str) -> NetworkStats:
        """
        Count a member's downline per generation.

        Args:
            member_id: Member ID

        Returns:
            NetworkStats with one breakdown entry per distance 1..max_depth
        """
        if not await self.member_repo.exists(id=member_id):
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )

        stats = NetworkStats(
            member_id=member_id,
            generation_breakdown={
                distance: 0
                for distance in range(1, self.config.max_depth + 1)
            },
        )

        for distance, total, active in await self.edge_repo.count_by_distance(
            member_id
        ):
            if distance > self.config.max_depth:
                continue
            stats.generation_breakdown[distance] = total
            stats.total_referrals += total
            stats.active_referrals += active

        stats.direct_referrals = stats.generation_breakdown.get(1, 0)
        return stats
