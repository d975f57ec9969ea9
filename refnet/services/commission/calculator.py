"""
Commission calculator.

Pure computation of per-generation commission shares. No I/O.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from refnet.models.enums import CommissionType

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CommissionShare:
    """One ancestor's share of a qualifying event."""

    recipient_id: str
    generation_distance: int
    rate: Decimal
    amount: Decimal
    commission_type: CommissionType


def quantize_amount(amount: Decimal, places: int) -> Decimal:
    """
    Round to currency precision using banker's rounding.

    Args:
        amount: Raw amount
        places: Decimal places of the currency

    Returns:
        Rounded amount (ties go to the even neighbour)
    """
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUND_HALF_EVEN)


def calculate_commission(
    base_amount: Decimal, rate_percent: Decimal, places: int
) -> Decimal:
    """
    Commission for one generation.

    Args:
        base_amount: Event amount
        rate_percent: Rate in percent (10.0 means 10%)
        places: Currency precision

    Returns:
        base_amount * rate / 100 rounded half-even to places
    """
    return quantize_amount(base_amount * rate_percent / HUNDRED, places)


def commission_type_for(distance: int) -> CommissionType:
    """Direct sponsor earns a direct commission; deeper ancestors a level bonus."""
    if distance == 1:
        return CommissionType.DIRECT
    return CommissionType.LEVEL_BONUS


def plan_distribution(
    base_amount: Decimal,
    ancestors: list[tuple[str, int]],
    rates: dict[int, Decimal],
    places: int,
) -> list[CommissionShare]:
    """
    Compute each ancestor's share.

    Distances without a rate and shares that round to zero are skipped.

    Args:
        base_amount: Event amount
        ancestors: (ancestor_id, distance), nearest first
        rates: Rate in percent keyed by distance
        places: Currency precision

    Returns:
        Shares ordered by distance
    """
    shares: list[CommissionShare] = []
    for recipient_id, distance in ancestors:
        rate = rates.get(distance, Decimal("0"))
        if rate <= 0:
            continue

        amount = calculate_commission(base_amount, rate, places)
        if amount <= 0:
            continue

        shares.append(
            CommissionShare(
                recipient_id=recipient_id,
                generation_distance=distance,
                rate=rate,
                amount=amount,
                commission_type=commission_type_for(distance),
            )
        )
    return shares
