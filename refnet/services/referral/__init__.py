"""
Referral services package.

Contains modular services for the referral graph:
- code_generator: Unique referral and link code generation
- chain_manager: Enrollment and ancestor/descendant reads
- link_manager: Campaign referral links
- query_manager: Downline statistics
"""

from refnet.services.referral.chain_manager import ReferralGraphManager
from refnet.services.referral.code_generator import (
    generate_code,
    generate_unique_code,
)
from refnet.services.referral.link_manager import ReferralLinkManager
from refnet.services.referral.query_manager import (
    NetworkStats,
    ReferralQueryManager,
)


__all__ = [
    # Codes
    "generate_code",
    "generate_unique_code",
    # Managers
    "ReferralGraphManager",
    "ReferralLinkManager",
    "ReferralQueryManager",
    # Results
    "NetworkStats",
]
