"""
Unit tests for commission calculation.

Tests cover:
- Per-generation amounts from the default schedule
- Banker's rounding to currency precision
- Distances beyond the rate table
- Zero shares
"""

from decimal import Decimal

import pytest

from refnet.config.constants import DEFAULT_COMMISSION_RATES
from refnet.models.enums import CommissionType
from refnet.services.commission.calculator import (
    calculate_commission,
    commission_type_for,
    plan_distribution,
    quantize_amount,
)


class TestCalculateCommission:
    """Test single-generation commission amounts."""

    def test_default_schedule_on_1000(self):
        """Test 1000 at 10 / 5 / 2 percent."""
        assert calculate_commission(Decimal("1000"), Decimal("10.0"), 2) == Decimal("100.00")
        assert calculate_commission(Decimal("1000"), Decimal("5.0"), 2) == Decimal("50.00")
        assert calculate_commission(Decimal("1000"), Decimal("2.0"), 2) == Decimal("20.00")

    def test_rounds_to_currency_precision(self):
        """Test 33.33 at 10% rounds to 3.33."""
        assert calculate_commission(Decimal("33.33"), Decimal("10"), 2) == Decimal("3.33")

    def test_zero_decimal_currency(self):
        """Test currency without minor units."""
        assert calculate_commission(Decimal("1234"), Decimal("10"), 0) == Decimal("123")

    def test_zero_rate(self):
        """Test zero rate yields zero."""
        assert calculate_commission(Decimal("1000"), Decimal("0"), 2) == Decimal("0.00")


class TestBankersRounding:
    """Test ROUND_HALF_EVEN on ties."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0.125", "0.12"),
            ("0.135", "0.14"),
            ("2.345", "2.34"),
            ("2.355", "2.36"),
            ("0.124", "0.12"),
            ("0.126", "0.13"),
        ],
    )
    def test_quantize_ties_to_even(self, raw, expected):
        """Test ties go to the even neighbour."""
        assert quantize_amount(Decimal(raw), 2) == Decimal(expected)

    def test_commission_tie_rounds_down_to_even(self):
        """Test 1.25 at 10% (0.125) becomes 0.12."""
        assert calculate_commission(Decimal("1.25"), Decimal("10"), 2) == Decimal("0.12")

    def test_commission_tie_rounds_up_to_even(self):
        """Test 1.35 at 10% (0.135) becomes 0.14."""
        assert calculate_commission(Decimal("1.35"), Decimal("10"), 2) == Decimal("0.14")


class TestCommissionType:
    """Test commission type per distance."""

    def test_direct_sponsor(self):
        assert commission_type_for(1) == CommissionType.DIRECT

    @pytest.mark.parametrize("distance", [2, 3, 4, 5])
    def test_deeper_ancestors(self, distance):
        assert commission_type_for(distance) == CommissionType.LEVEL_BONUS


class TestPlanDistribution:
    """Test planning shares over an ancestor chain."""

    def test_full_chain(self):
        """Test five ancestors on the default schedule."""
        ancestors = [(f"a{d}", d) for d in range(1, 6)]

        shares = plan_distribution(
            Decimal("1000"), ancestors, DEFAULT_COMMISSION_RATES, 2
        )

        assert [s.recipient_id for s in shares] == ["a1", "a2", "a3", "a4", "a5"]
        assert [s.amount for s in shares] == [
            Decimal("100.00"),
            Decimal("50.00"),
            Decimal("20.00"),
            Decimal("10.00"),
            Decimal("5.00"),
        ]
        assert shares[0].commission_type == CommissionType.DIRECT
        assert shares[0].rate == Decimal("10.0")

    def test_distance_beyond_table_is_skipped(self):
        """Test ancestors without a rate receive nothing."""
        shares = plan_distribution(
            Decimal("1000"),
            [("a1", 1), ("a6", 6)],
            DEFAULT_COMMISSION_RATES,
            2,
        )

        assert [s.recipient_id for s in shares] == ["a1"]

    def test_zero_shares_are_skipped(self):
        """Test shares rounding to zero produce no record."""
        shares = plan_distribution(
            Decimal("0.05"),
            [("a1", 1), ("a2", 2), ("a5", 5)],
            DEFAULT_COMMISSION_RATES,
            2,
        )

        # 0.005 -> 0.00 (half-even), 0.0025 -> 0.00, 0.00025 -> 0.00
        assert shares == []

    def test_zero_base_amount(self):
        """Test zero-amount events produce no shares."""
        assert plan_distribution(
            Decimal("0"), [("a1", 1)], DEFAULT_COMMISSION_RATES, 2
        ) == []

    def test_no_ancestors(self):
        """Test root members generate nothing."""
        assert plan_distribution(
            Decimal("1000"), [], DEFAULT_COMMISSION_RATES, 2
        ) == []
