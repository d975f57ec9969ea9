"""
Repositories.

Data access layer for all models.
"""

from refnet.repositories.base import BaseRepository
from refnet.repositories.commission_repository import CommissionRepository
from refnet.repositories.commission_rollup_repository import (
    CommissionRollupRepository,
)
from refnet.repositories.member_repository import MemberRepository
from refnet.repositories.referral_edge_repository import ReferralEdgeRepository
from refnet.repositories.referral_link_repository import ReferralLinkRepository

__all__ = [
    "BaseRepository",
    "CommissionRepository",
    "CommissionRollupRepository",
    "MemberRepository",
    "ReferralEdgeRepository",
    "ReferralLinkRepository",
]
