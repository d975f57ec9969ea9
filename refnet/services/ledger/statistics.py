"""
Commission statistics.

Read-side aggregations over the commission ledger: totals, month-to-date,
average daily earnings, per-generation breakdown and zero-filled daily and
monthly series for charting collaborators.
"""

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from refnet.config.settings import Settings, settings
from refnet.models.enums import CommissionStatus
from refnet.repositories.commission_repository import CommissionRepository
from refnet.repositories.member_repository import MemberRepository
from refnet.services.commission.calculator import quantize_amount
from refnet.services.ledger.rollups import CommissionRollupService
from refnet.utils.datetime_utils import (
    as_utc,
    day_start,
    month_start,
    period_key,
    period_label,
    period_start,
    utc_now,
)
from refnet.utils.exceptions import MemberNotFound, ValidationError

MAX_SERIES_DAYS = 366


@dataclass
class CommissionStats:
    """Commission figures for one member."""

    member_id: str
    as_of: datetime
    total_earned: Decimal = Decimal("0")
    pending_total: Decimal = Decimal("0")
    this_month: Decimal = Decimal("0")
    average_daily: Decimal = Decimal("0")
    generation_breakdown: dict[int, Decimal] = field(default_factory=dict)


class SeriesPoint(NamedTuple):
    """One chart bucket: a date or a yyyy-mm label and its amount."""

    bucket: date | str
    amount: Decimal


class CommissionStatsService:
    """Aggregates commission statistics."""

    def __init__(
        self,
        session: AsyncSession,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize stats service."""
        self.session = session
        self.config = config or settings
        self.clock = clock
        self.commission_repo = CommissionRepository(session)
        self.member_repo = MemberRepository(session)
        self.rollups = CommissionRollupService(session)

    async def stats_for(
        self, member_id: str, as_of: datetime | None = None
    ) -> CommissionStats:
        """
        Commission stats for a member.

        Earned figures count completed records, pending figures count
        pending records; only records created at or before as_of are
        included. Without as_of the totals come from monthly rollups.

        Args:
            member_id: Member ID
            as_of: Point in time (defaults to now)

        Returns:
            CommissionStats
        """
        await self._require_member(member_id)
        places = self._places()

        if as_of is None:
            as_of = as_utc(self.clock())
            total_earned, pending_total, this_month = await self._from_rollups(
                member_id, as_of
            )
        else:
            as_of = as_utc(as_of)
            total_earned, pending_total, this_month = await self._from_scan(
                member_id, as_of
            )

        breakdown = {
            distance: quantize_amount(Decimal("0"), places)
            for distance in range(1, self.config.max_depth + 1)
        }
        for distance, amount in (
            await self.commission_repo.sum_by_distance(
                member_id, CommissionStatus.COMPLETED, end=as_of
            )
        ).items():
            breakdown[distance] = quantize_amount(amount, places)

        return CommissionStats(
            member_id=member_id,
            as_of=as_of,
            total_earned=quantize_amount(total_earned, places),
            pending_total=quantize_amount(pending_total, places),
            this_month=quantize_amount(this_month, places),
            average_daily=quantize_amount(this_month / as_of.day, places),
            generation_breakdown=breakdown,
        )

    async def daily_series(
        self,
        member_id: str,
        window_days: int,
        as_of: datetime | None = None,
    ) -> list[SeriesPoint]:
        """
        Completed commissions per UTC day.

        Args:
            member_id: Member ID
            window_days: Number of days ending on as_of's date
            as_of: Point in time (defaults to now)

        Returns:
            One point per day, oldest first, missing days as zero
        """
        if window_days < 1 or window_days > MAX_SERIES_DAYS:
            raise ValidationError(
                f"window_days must be between 1 and {MAX_SERIES_DAYS}",
                window_days=window_days,
            )
        await self._require_member(member_id)
        places = self._places()

        as_of = as_utc(as_of or self.clock())
        last_day = as_of.date()
        first_day = last_day - timedelta(days=window_days - 1)

        buckets: dict[date, Decimal] = defaultdict(Decimal)
        for created_at, amount in await self.commission_repo.amounts_between(
            member_id,
            CommissionStatus.COMPLETED,
            start=day_start(first_day),
            end=as_of,
        ):
            buckets[as_utc(created_at).date()] += amount

        return [
            SeriesPoint(
                first_day + timedelta(days=offset),
                quantize_amount(
                    buckets.get(first_day + timedelta(days=offset), Decimal("0")),
                    places,
                ),
            )
            for offset in range(window_days)
        ]

    async def monthly_series(
        self, member_id: str, as_of: datetime | None = None
    ) -> list[SeriesPoint]:
        """
        Completed commissions per calendar month.

        Args:
            member_id: Member ID
            as_of: Point in time (defaults to now)

        Returns:
            One point per month from enrollment through as_of, labelled
            yyyy-mm, missing months as zero
        """
        member = await self._require_member(member_id)
        places = self._places()

        as_of = as_utc(as_of or self.clock())
        first_period = period_key(member.created_at)
        last_period = period_key(as_of)
        if last_period < first_period:
            return []

        buckets: dict[int, Decimal] = defaultdict(Decimal)
        for created_at, amount in await self.commission_repo.amounts_between(
            member_id,
            CommissionStatus.COMPLETED,
            start=period_start(first_period),
            end=as_of,
        ):
            buckets[period_key(created_at)] += amount

        series = []
        period = first_period
        while period <= last_period:
            series.append(
                SeriesPoint(
                    period_label(period),
                    quantize_amount(buckets.get(period, Decimal("0")), places),
                )
            )
            period = _next_period(period)
        return series

    async def _from_rollups(
        self, member_id: str, as_of: datetime
    ) -> tuple[Decimal, Decimal, Decimal]:
        current = period_key(as_of)
        total_earned = Decimal("0")
        pending_total = Decimal("0")
        this_month = Decimal("0")

        for totals in await self.rollups.totals(member_id):
            total_earned += totals.earned_total
            pending_total += totals.pending_total
            if totals.period == current:
                this_month = totals.earned_total
        return total_earned, pending_total, this_month

    async def _from_scan(
        self, member_id: str, as_of: datetime
    ) -> tuple[Decimal, Decimal, Decimal]:
        total_earned = await self.commission_repo.sum_amount(
            member_id, CommissionStatus.COMPLETED, end=as_of
        )
        pending_total = await self.commission_repo.sum_amount(
            member_id, CommissionStatus.PENDING, end=as_of
        )
        this_month = await self.commission_repo.sum_amount(
            member_id,
            CommissionStatus.COMPLETED,
            start=month_start(as_of),
            end=as_of,
        )
        return total_earned, pending_total, this_month

    def _places(self) -> int:
        return self.config.currency_precision[self.config.base_currency]

    async def _require_member(self, member_id: str):
        member = await self.member_repo.get_by_id(member_id)
        if member is None:
            raise MemberNotFound(
                f"Member {member_id} not found", member_id=member_id
            )
        return member


def _next_period(period: int) -> int:
    year, month = divmod(period, 100)
    if month == 12:
        return (year + 1) * 100 + 1
    return period + 1
