"""
Referral graph management module.

Maintains the sponsorship forest: enrollment, ancestor edge materialization
and ancestor/descendant reads served from the edge index.
"""

from collections.abc import Callable
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.enums import MemberStatus
from refnet.models.member import Member
from refnet.repositories.member_repository import MemberRepository
from refnet.repositories.referral_edge_repository import ReferralEdgeRepository
from refnet.services.referral.code_generator import (
    generate_unique_code,
    normalize_code,
)
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import (
    CycleDetected,
    DuplicateMember,
    InvalidSponsorCode,
    MemberNotFound,
    SelfReferral,
    ValidationError,
)

MAX_MEMBER_ID_LENGTH = 64


class ReferralGraphManager:
    """Manages the sponsorship forest and its ancestor edge index."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize graph manager."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.member_repo = MemberRepository(session)
        self.edge_repo = ReferralEdgeRepository(session)

    async def enroll(
        self, candidate_id: str, sponsor_code: str | None = None
    ) -> Member:
        """
        Enroll a new member, optionally under a sponsor.

        Validates the sponsor, assigns a unique referral code, sets
        sponsor_id once and materializes one edge per ancestor up to
        max_depth.

        Args:
            candidate_id: ID supplied by the identity collaborator
            sponsor_code: Referral code of the sponsor

        Returns:
            Created member

        Raises:
            InvalidSponsorCode: Unknown or suspended sponsor
            SelfReferral: Sponsor code belongs to the candidate
            DuplicateMember: Candidate is already enrolled
            CycleDetected: Sponsor chain loops back on itself
            CodeGenerationExhausted: No unique code could be generated
        """
        candidate_id = (candidate_id or "").strip()
        if not candidate_id or len(candidate_id) > MAX_MEMBER_ID_LENGTH:
            raise ValidationError(
                "Member ID must be 1-64 characters", member_id=candidate_id
            )

        sponsor = None
        if sponsor_code is not None and sponsor_code.strip():
            sponsor = await self._resolve_sponsor(candidate_id, sponsor_code)

        if await self.member_repo.exists(id=candidate_id):
            raise DuplicateMember(
                f"Member {candidate_id} is already enrolled",
                member_id=candidate_id,
            )

        ancestors = await self._walk_sponsor_chain(candidate_id, sponsor)

        generation = 0
        if sponsor is not None:
            generation = min(sponsor.generation + 1, self.config.generation_cap)

        referral_code = await generate_unique_code(
            self._referral_code_taken,
            self.config.referral_code_length,
            self.config.code_generation_max_attempts,
            namespace="referral",
        )

        now = self.clock()
        member = await self.member_repo.create(
            id=candidate_id,
            referral_code=referral_code,
            sponsor_id=sponsor.id if sponsor else None,
            generation=generation,
            status=MemberStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

        if ancestors:
            await self.edge_repo.add_edges(
                member.id, [ancestor.id for ancestor in ancestors]
            )

        logger.info(
            "Member enrolled",
            extra={
                "member_id": member.id,
                "sponsor_id": member.sponsor_id,
                "generation": generation,
                "edges_created": len(ancestors),
            },
        )
        return member

    async def ancestors_of(
        self, member_id: str
    ) -> list[tuple[Member, int]]:
        """
        Get a member's ancestors, nearest first.

        Args:
            member_id: Member ID

        Returns:
            List of (ancestor, distance), length <= max_depth

        Raises:
            MemberNotFound: If the member does not exist
        """
        await self._require_member(member_id)
        return await self.edge_repo.get_ancestors(
            member_id, max_distance=self.config.max_depth
        )

    async def descendants_of(
        self, member_id: str, generation: int | None = None
    ) -> list[Member]:
        """
        Get a member's descendants within the materialized depth.

        Args:
            member_id: Member ID
            generation: Only descendants exactly this many hops below

        Returns:
            Descendants ordered by distance then enrollment time
        """
        await self._require_member(member_id)
        if generation is not None and generation < 1:
            raise ValidationError(
                "Generation must be >= 1", generation=generation
            )

        rows = await self.edge_repo.get_descendants(member_id, generation)
        return [member for member, _ in rows]

    async def direct_referrals(self, member_id: str) -> list[Member]:
        """Get members sponsored directly by a member."""
        return await self.descendants_of(member_id, generation=1)

    async def _resolve_sponsor(
        self, candidate_id: str, sponsor_code: str
    ) -> Member:
        code = normalize_code(sponsor_code)
        sponsor = await self.member_repo.get_by_referral_code(code)

        if sponsor is None:
            logger.warning(
                "Enrollment rejected: unknown sponsor code",
                extra={"candidate_id": candidate_id, "sponsor_code": code},
            )
            raise InvalidSponsorCode(
                f"Sponsor code {code} does not exist", sponsor_code=code
            )

        if sponsor.id == candidate_id:
            logger.warning(
                "Enrollment rejected: self-referral",
                extra={"candidate_id": candidate_id},
            )
            raise SelfReferral(
                "Members cannot sponsor themselves", member_id=candidate_id
            )

        if sponsor.status != MemberStatus.ACTIVE:
            logger.warning(
                "Enrollment rejected: sponsor is not active",
                extra={"candidate_id": candidate_id, "sponsor_id": sponsor.id},
            )
            raise InvalidSponsorCode(
                f"Sponsor code {code} belongs to an inactive member",
                sponsor_code=code,
            )

        return sponsor

    async def _walk_sponsor_chain(
        self, candidate_id: str, sponsor: Member | None
    ) -> list[Member]:
        """
        Walk sponsor pointers upward from the sponsor.

        Stops at a root or after max_depth ancestors. Revisiting the
        candidate or any node already on the path means the stored forest
        is corrupted.
        """
        chain: list[Member] = []
        visited = {candidate_id}
        node = sponsor

        while node is not None and len(chain) < self.config.max_depth:
            if node.id in visited:
                logger.error(
                    "Referral cycle detected",
                    extra={
                        "candidate_id": candidate_id,
                        "chain_ids": [m.id for m in chain],
                        "revisited_id": node.id,
                    },
                )
                raise CycleDetected(
                    f"Sponsor chain of {candidate_id} revisits {node.id}",
                    member_id=candidate_id,
                    revisited_id=node.id,
                )

            visited.add(node.id)
            chain.append(node)

            if node.sponsor_id is None:
                break
            node = await self.member_repo.get_by_id(node.sponsor_id)

        return chain

    async def _referral_code_taken(self, code: str) -> bool:
        return await self.member_repo.exists(referral_code=code)

    async def _require_member(self, member_id: str) -> Member:
        member = await self.member_repo.get_by_id(member_id)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )
        return member
