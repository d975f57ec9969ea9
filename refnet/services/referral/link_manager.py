"""
Referral link management module.

Campaign links resolve to their owner's sponsorship. Link codes live in
their own namespace, separate from member referral codes.
"""

from collections.abc import Callable
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.member import Member
from refnet.models.referral_link import ReferralLink
from refnet.repositories.member_repository import MemberRepository
from refnet.repositories.referral_link_repository import ReferralLinkRepository
from refnet.services.referral.code_generator import (
    generate_unique_code,
    normalize_code,
)
from refnet.utils.datetime_utils import utc_now
from refnet.utils.exceptions import LinkNotFound, MemberNotFound, ValidationError

MAX_CAMPAIGN_LABEL_LENGTH = 100


class ReferralLinkManager:
    """Manages campaign referral links."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize link manager."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.member_repo = MemberRepository(session)
        self.link_repo = ReferralLinkRepository(session)

    async def create_link(
        self, owner_id: str, campaign_label: str | None = None
    ) -> ReferralLink:
        """
        Create a campaign link for a member.

        Args:
            owner_id: Member sharing the link
            campaign_label: Optional campaign name

        Returns:
            Created link
        """
        if campaign_label is not None:
            campaign_label = campaign_label.strip() or None
        if campaign_label and len(campaign_label) > MAX_CAMPAIGN_LABEL_LENGTH:
            raise ValidationError(
                "Campaign label must be at most 100 characters",
                campaign_label=campaign_label,
            )

        if not await self.member_repo.exists(id=owner_id):
            raise MemberNotFound(
                f"Member {owner_id} not found", member_id=owner_id
            )

        link_code = await generate_unique_code(
            self._link_code_taken,
            self.config.link_code_length,
            self.config.code_generation_max_attempts,
            namespace="link",
        )
        link = await self.link_repo.create(
            owner_id=owner_id,
            campaign_label=campaign_label,
            link_code=link_code,
            click_count=0,
            created_at=self.clock(),
        )

        logger.info(
            "Referral link created",
            extra={
                "owner_id": owner_id,
                "link_code": link_code,
                "campaign_label": campaign_label,
            },
        )
        return link

    async def record_click(self, link_code: str) -> ReferralLink:
        """
        Count a click on a link.

        Args:
            link_code: Link code

        Returns:
            Link with the updated counter

        Raises:
            LinkNotFound: If the code does not exist
        """
        code = normalize_code(link_code)
        if not await self.link_repo.increment_clicks(code):
            raise LinkNotFound(f"Link {code} not found", link_code=code)

        link = await self.link_repo.get_by_code(code)
        await self.session.refresh(link)
        return link

    async def get_link(self, link_code: str) -> ReferralLink:
        """Get link by code or raise LinkNotFound."""
        code = normalize_code(link_code)
        link = await self.link_repo.get_by_code(code)
        if link is None:
            raise LinkNotFound(f"Link {code} not found", link_code=code)
        return link

    async def resolve_link(self, link_code: str) -> Member:
        """
        Resolve a link to its owner.

        Args:
            link_code: Link code

        Returns:
            Owner member
        """
        link = await self.get_link(link_code)
        owner = await self.member_repo.get_by_id(link.owner_id)
        if owner is None:
            raise MemberNotFound(
                f"Member {link.owner_id} not found", member_id=link.owner_id
            )
        return owner

    async def links_for(self, owner_id: str) -> list[ReferralLink]:
        """Get a member's links, newest first."""
        if not await self.member_repo.exists(id=owner_id):
            raise MemberNotFound(
                f"Member {owner_id} not found", member_id=owner_id
            )
        return await self.link_repo.find_by_owner(owner_id)

    async def _link_code_taken(self, code: str) -> bool:
        return await self.link_repo.exists(link_code=code)
