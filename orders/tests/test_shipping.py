from decimal import Decimal

import pytest
from orders.shipping import calculate_shipping_fee, shipping_tier_info


@pytest.mark.parametrize(
    "subtotal,fee",
    [
        (50000, 7000),
        (100000, 8000),
        (250000, 20000),
        (500000, 25000),
        (1000000, 18000),
        (150000, 12000),
    ],
)
def test_shipping_fee_tiers(subtotal, fee):
    assert calculate_shipping_fee(Decimal(subtotal)) == Decimal(fee)


def test_tier_boundary_switches_percentage():
    assert calculate_shipping_fee(Decimal("99999")) == Decimal("14000")  # 13,999.86 rounds up
    assert calculate_shipping_fee(Decimal("100000")) < calculate_shipping_fee(Decimal("99999"))


def test_fee_is_rounded_half_up_to_whole_units():
    # 14% of 12,345 = 1,728.3
    assert calculate_shipping_fee(Decimal("12345")) == Decimal("1728")
    # 8% of 100,006.25 = 8,000.5
    assert calculate_shipping_fee(Decimal("100006.25")) == Decimal("8001")


def test_empty_subtotal_ships_free():
    assert calculate_shipping_fee(Decimal("0")) == Decimal("0")


def test_tier_info_points_at_next_tier():
    info = shipping_tier_info(Decimal("250000"))
    assert info["percentage"] == Decimal("8")
    assert info["next_tier"] == Decimal("5")
    assert info["next_tier_threshold"] == Decimal("300000")

    top = shipping_tier_info(Decimal("2000000"))
    assert top == {"percentage": Decimal("1.8"), "next_tier": None, "next_tier_threshold": None}
