"""
Services.

Business logic layer.
"""

from refnet.services.commission import (
    CommissionSettlement,
    DistributionEngine,
    DistributionResult,
    QualifyingEvent,
)
from refnet.services.ledger import CommissionRollupService, CommissionStatsService
from refnet.services.member import MemberService
from refnet.services.network_service import ReferralNetworkService
from refnet.services.notification import NotificationHub, RedisNotificationRelay
from refnet.services.referral import (
    ReferralGraphManager,
    ReferralLinkManager,
    ReferralQueryManager,
)


__all__ = [
    # Facade
    "ReferralNetworkService",
    # Graph
    "ReferralGraphManager",
    "ReferralLinkManager",
    "ReferralQueryManager",
    "MemberService",
    # Commissions
    "CommissionSettlement",
    "DistributionEngine",
    "DistributionResult",
    "QualifyingEvent",
    # Ledger
    "CommissionRollupService",
    "CommissionStatsService",
    # Notifications
    "NotificationHub",
    "RedisNotificationRelay",
]
