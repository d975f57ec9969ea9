"""
Commission services package.

Contains modular services for commission distribution:
- events: Qualifying event values and payload parsing
- calculator: Pure per-generation share computation
- distribution_engine: Idempotent distribution of one event
- settlement: Forward-only status transitions and balance adjustments
"""

from refnet.services.commission.calculator import (
    CommissionShare,
    calculate_commission,
    commission_type_for,
    plan_distribution,
    quantize_amount,
)
from refnet.services.commission.distribution_engine import (
    DistributionEngine,
    DistributionResult,
)
from refnet.services.commission.events import QualifyingEvent
from refnet.services.commission.settlement import (
    CommissionSettlement,
    SettlementResult,
)


__all__ = [
    # Events
    "QualifyingEvent",
    # Calculation
    "CommissionShare",
    "calculate_commission",
    "commission_type_for",
    "plan_distribution",
    "quantize_amount",
    # Services
    "CommissionSettlement",
    "DistributionEngine",
    # Results
    "DistributionResult",
    "SettlementResult",
]
