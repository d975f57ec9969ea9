"""
ReferralEdge repository.

Data access layer for the denormalized ancestor index.
"""

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.models.enums import MemberStatus
from refnet.models.member import Member
from refnet.models.referral_edge import ReferralEdge
from refnet.repositories.base import BaseRepository


class ReferralEdgeRepository(BaseRepository[ReferralEdge]):
    """ReferralEdge repository with graph queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral edge repository."""
        super().__init__(ReferralEdge, session)

    async def add_edges(
        self, member_id: str, ancestor_ids: list[str]
    ) -> list[ReferralEdge]:
        """
        Insert one edge per ancestor, distance = position + 1.

        Args:
            member_id: New member
            ancestor_ids: Ancestors nearest first

        Returns:
            Created edges
        """
        edges = [
            ReferralEdge(
                member_id=member_id,
                ancestor_id=ancestor_id,
                generation_distance=distance,
            )
            for distance, ancestor_id in enumerate(ancestor_ids, start=1)
        ]
        self.session.add_all(edges)
        await self.session.flush()
        return edges

    async def get_ancestors(
        self, member_id: str, max_distance: int | None = None
    ) -> list[tuple[Member, int]]:
        """
        Get ancestors of a member ordered by distance ascending.

        Args:
            member_id: Member ID
            max_distance: Only ancestors within this distance

        Returns:
            List of (ancestor, distance)
        """
        stmt = (
            select(Member, ReferralEdge.generation_distance)
            .join(ReferralEdge, ReferralEdge.ancestor_id == Member.id)
            .where(ReferralEdge.member_id == member_id)
            .order_by(ReferralEdge.generation_distance)
        )
        if max_distance is not None:
            stmt = stmt.where(ReferralEdge.generation_distance <= max_distance)

        result = await self.session.execute(stmt)
        return [(member, distance) for member, distance in result.all()]

    async def get_descendants(
        self, ancestor_id: str, distance: int | None = None
    ) -> list[tuple[Member, int]]:
        """
        Get descendants of a member within the materialized depth.

        Args:
            ancestor_id: Ancestor member ID
            distance: Only descendants at exactly this distance

        Returns:
            List of (descendant, distance) ordered by distance then enrollment
        """
        stmt = (
            select(Member, ReferralEdge.generation_distance)
            .join(ReferralEdge, ReferralEdge.member_id == Member.id)
            .where(ReferralEdge.ancestor_id == ancestor_id)
            .order_by(
                ReferralEdge.generation_distance,
                Member.created_at,
                Member.id,
            )
        )
        if distance is not None:
            stmt = stmt.where(ReferralEdge.generation_distance == distance)

        result = await self.session.execute(stmt)
        return [(member, dist) for member, dist in result.all()]

    async def count_by_distance(
        self, ancestor_id: str
    ) -> list[tuple[int, int, int]]:
        """
        Count descendants per distance.

        Args:
            ancestor_id: Ancestor member ID

        Returns:
            List of (distance, total, active) ordered by distance
        """
        active = func.sum(
            case((Member.status == MemberStatus.ACTIVE.value, 1), else_=0)
        )
        stmt = (
            select(
                ReferralEdge.generation_distance,
                func.count(ReferralEdge.member_id),
                active,
            )
            .join(Member, ReferralEdge.member_id == Member.id)
            .where(ReferralEdge.ancestor_id == ancestor_id)
            .group_by(ReferralEdge.generation_distance)
            .order_by(ReferralEdge.generation_distance)
        )
        result = await self.session.execute(stmt)
        return [
            (distance, total, int(active_count or 0))
            for distance, total, active_count in result.all()
        ]
