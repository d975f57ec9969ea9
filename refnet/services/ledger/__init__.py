"""
Ledger services package.

- rollups: Monthly per-member aggregates kept equal to the ledger
- statistics: Stats and chart series over the commission ledger
"""

from refnet.services.ledger.rollups import CommissionRollupService, PeriodTotals
from refnet.services.ledger.statistics import (
    CommissionStats,
    CommissionStatsService,
    SeriesPoint,
)


__all__ = [
    "CommissionRollupService",
    "CommissionStats",
    "CommissionStatsService",
    "PeriodTotals",
    "SeriesPoint",
]
