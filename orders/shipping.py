"""Shipping fee tiers.

The fee is a percentage of the merchandise subtotal; the percentage drops
as the subtotal grows. Fees are whole VND, rounded half-up.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

# (upper bound exclusive, percent); the last tier has no upper bound.
SHIPPING_TIERS: tuple[tuple[Optional[Decimal], Decimal], ...] = (
    (Decimal("100000"), Decimal("14")),
    (Decimal("300000"), Decimal("8")),
    (Decimal("600000"), Decimal("5")),
    (Decimal("1000000"), Decimal("3")),
    (None, Decimal("1.8")),
)


def _tier_index(subtotal: Decimal) -> int:
    for index, (upper, _percent) in enumerate(SHIPPING_TIERS):
        if upper is None or subtotal < upper:
            return index
    return len(SHIPPING_TIERS) - 1  # pragma: no cover


def calculate_shipping_fee(subtotal) -> Decimal:
    subtotal = Decimal(subtotal)
    if subtotal <= 0:
        return Decimal("0")
    percent = SHIPPING_TIERS[_tier_index(subtotal)][1]
    return (subtotal * percent / Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def shipping_tier_info(subtotal) -> dict:
    """Describe the current tier and the next cheaper one, if any."""

    index = _tier_index(Decimal(subtotal))
    upper, percent = SHIPPING_TIERS[index]
    if upper is None:
        return {"percentage": percent, "next_tier": None, "next_tier_threshold": None}
    return {
        "percentage": percent,
        "next_tier": SHIPPING_TIERS[index + 1][1],
        "next_tier_threshold": upper,
    }
