"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from refnet.models.base import Base
from refnet.models.commission_record import CommissionRecord
from refnet.models.commission_rollup import CommissionRollup
from refnet.models.enums import (
    CommissionStatus,
    CommissionType,
    EventKind,
    MemberStatus,
    SettlementOutcome,
)
from refnet.models.member import Member
from refnet.models.referral_edge import ReferralEdge
from refnet.models.referral_link import ReferralLink

__all__ = [
    # Base
    "Base",
    # Enums
    "CommissionStatus",
    "CommissionType",
    "EventKind",
    "MemberStatus",
    "SettlementOutcome",
    # Core Models
    "Member",
    "ReferralEdge",
    "ReferralLink",
    # Ledger
    "CommissionRecord",
    "CommissionRollup",
]
