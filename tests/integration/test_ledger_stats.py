"""
Integration tests for ledger statistics and monthly rollups.

Tests cover:
- Stats from rollups agree with a point-in-time ledger scan
- Month-to-date and average daily earnings
- Zero-filled daily and monthly series
- Rollup verification and rebuild
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from refnet.models.commission_rollup import CommissionRollup
from refnet.services.commission import QualifyingEvent
from refnet.utils.exceptions import MemberNotFound, RollupMismatch, ValidationError

pytestmark = pytest.mark.slow


@pytest.fixture
async def history(service, chain, clock):
    """
    m0 earns from m1 across three months:

    - 2026-01-10: enrollment
    - 2026-02-20: tx-1 1000 -> 100.00 completed
    - 2026-03-03: tx-2 500 -> 50.00 completed
    - 2026-03-15: tx-3 200 -> 20.00 pending
    - 2026-03-15: tx-4 300 -> 30.00 failed
    """
    clock.now = datetime(2026, 1, 10, 9, 0, tzinfo=UTC)
    await chain(2)

    settled = []
    for when, event_id, amount in [
        (datetime(2026, 2, 20, 10, 0, tzinfo=UTC), "tx-1", "1000"),
        (datetime(2026, 3, 3, 18, 30, tzinfo=UTC), "tx-2", "500"),
    ]:
        clock.now = when
        result = await service.distribute(
            QualifyingEvent(event_id, "m1", Decimal(amount))
        )
        settled.append(result.records[0].id)

    clock.now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
    for record_id in settled:
        await service.settle(record_id, "completed")

    pending = await service.distribute(QualifyingEvent("tx-3", "m1", Decimal("200")))
    failed = await service.distribute(QualifyingEvent("tx-4", "m1", Decimal("300")))
    await service.settle(failed.records[0].id, "failed")
    return {"pending_record_id": pending.records[0].id}


class TestStats:
    """Test commission stats."""

    async def test_current_stats(self, service, history):
        stats = await service.stats_for("m0")

        assert stats.total_earned == Decimal("150.00")
        assert stats.pending_total == Decimal("20.00")
        assert stats.this_month == Decimal("50.00")
        # 50.00 over 15 days of March
        assert stats.average_daily == Decimal("3.33")
        assert stats.generation_breakdown == {
            1: Decimal("150.00"),
            2: Decimal("0"),
            3: Decimal("0"),
            4: Decimal("0"),
            5: Decimal("0"),
        }
        assert {str(amount) for amount in stats.generation_breakdown.values()} == {
            "150.00",
            "0.00",
        }

    async def test_rollups_agree_with_scan(self, service, history, clock):
        from_rollups = await service.stats_for("m0")
        from_scan = await service.stats_for("m0", as_of=clock.now)

        assert from_rollups == from_scan

    async def test_point_in_time(self, service, history):
        stats = await service.stats_for(
            "m0", as_of=datetime(2026, 2, 28, 23, 59, tzinfo=UTC)
        )

        assert stats.total_earned == Decimal("100.00")
        assert stats.pending_total == Decimal("0.00")
        assert stats.this_month == Decimal("100.00")
        assert stats.average_daily == Decimal("3.57")

    async def test_processing_not_counted_as_pending(self, service, history, clock):
        await service.mark_processing(history["pending_record_id"])

        assert (await service.stats_for("m0")).pending_total == Decimal("0.00")
        assert (
            await service.stats_for("m0", as_of=clock.now)
        ).pending_total == Decimal("0.00")

    async def test_member_without_commissions(self, service):
        await service.enroll("quiet")

        stats = await service.stats_for("quiet")

        assert stats.total_earned == 0
        assert stats.average_daily == 0
        assert set(stats.generation_breakdown) == {1, 2, 3, 4, 5}

    async def test_unknown_member(self, service):
        with pytest.raises(MemberNotFound):
            await service.stats_for("ghost")


class TestSeries:
    """Test chart series."""

    async def test_daily_series_zero_filled(self, service, history):
        series = await service.daily_series("m0", 15)

        assert len(series) == 15
        assert series[0].bucket == date(2026, 3, 1)
        assert series[-1].bucket == date(2026, 3, 15)
        assert dict(series)[date(2026, 3, 3)] == Decimal("50.00")
        assert sum(point.amount for point in series if point.bucket != date(2026, 3, 3)) == 0

    async def test_daily_series_sums_to_month_to_date(self, service, history):
        stats = await service.stats_for("m0")
        series = await service.daily_series("m0", 15)

        assert sum(point.amount for point in series) == stats.this_month

    @pytest.mark.parametrize("window_days", [0, 367])
    async def test_daily_series_window_bounds(self, service, history, window_days):
        with pytest.raises(ValidationError):
            await service.daily_series("m0", window_days)

    async def test_monthly_series_from_enrollment(self, service, history):
        series = await service.monthly_series("m0")

        assert series == [
            ("2026-01", Decimal("0.00")),
            ("2026-02", Decimal("100.00")),
            ("2026-03", Decimal("50.00")),
        ]


class TestRollups:
    """Test rollup maintenance."""

    async def test_verify_passes(self, service, history):
        totals = await service.verify_rollups("m0")

        assert [t.period for t in totals] == [202602, 202603]
        march = totals[1]
        assert march.record_count == 3
        assert march.earned_total == Decimal("50")
        assert march.pending_total == Decimal("20")

    async def test_tampered_rollup_detected_and_rebuilt(
        self, service, history, session_maker
    ):
        async with session_maker() as session, session.begin():
            await session.execute(
                update(CommissionRollup)
                .where(
                    CommissionRollup.member_id == "m0",
                    CommissionRollup.period == 202602,
                )
                .values(earned_total=CommissionRollup.earned_total + 1)
            )

        with pytest.raises(RollupMismatch):
            await service.verify_rollups("m0")

        await service.rebuild_rollups("m0")
        await service.verify_rollups("m0")
        assert (await service.stats_for("m0")).total_earned == Decimal("150.00")

    async def test_unknown_member(self, service):
        with pytest.raises(MemberNotFound):
            await service.verify_rollups("ghost")
