from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from orders.models import Order
from orders.tests.factories import OrderFactory
from promotions.models import Promotion, PromotionUsage
from promotions.services import (
    PromotionError,
    evaluate_promotions,
    format_vnd,
    list_active_coupons,
    recheck_promotions,
    record_promotion_usage,
)
from users.tests.factories import UserFactory

from .factories import PromotionFactory


def _evaluate(user, subtotal="500000", shipping="25000", **kwargs):
    return evaluate_promotions(subtotal=Decimal(subtotal), shipping_fee=Decimal(shipping), user=user, **kwargs)


@pytest.mark.django_db
def test_percentage_with_cap():
    promo = PromotionFactory(discount_value=Decimal("10"), max_discount=Decimal("40000"))
    result = _evaluate(UserFactory(), code=promo.code)
    assert result.total_discount == Decimal("40000.00")
    assert result.codes == [promo.code]


@pytest.mark.django_db
def test_percentage_below_cap():
    promo = PromotionFactory(discount_value=Decimal("5"), max_discount=Decimal("40000"))
    assert _evaluate(UserFactory(), code=promo.code).total_discount == Decimal("25000.00")


@pytest.mark.django_db
def test_free_shipping_equals_fee():
    promo = PromotionFactory(discount_type=Promotion.TYPE_FREE_SHIPPING, discount_value=Decimal("0"))
    assert _evaluate(UserFactory(), shipping="12000", code=promo.code).total_discount == Decimal("12000.00")


@pytest.mark.django_db
def test_codes_are_case_insensitive():
    promo = PromotionFactory(code="SPRING")
    assert promo.code == "SPRING"
    assert _evaluate(UserFactory(), code="  spring ").codes == ["SPRING"]


@pytest.mark.django_db
def test_unknown_single_code_raises():
    with pytest.raises(PromotionError, match="does not exist"):
        _evaluate(UserFactory(), code="NOPE")


@pytest.mark.django_db
def test_expired_and_inactive_codes_raise():
    expired = PromotionFactory(end_date=timezone.now() - timedelta(minutes=1))
    inactive = PromotionFactory(is_active=False)
    user = UserFactory()
    for code in (expired.code, inactive.code):
        with pytest.raises(PromotionError):
            _evaluate(user, code=code)


@pytest.mark.django_db
def test_min_order_value():
    promo = PromotionFactory(min_order_value=Decimal("600000"))
    with pytest.raises(PromotionError, match="600.000₫"):
        _evaluate(UserFactory(), code=promo.code)


@pytest.mark.django_db
def test_list_mode_drops_bad_codes_and_dedupes():
    fixed = PromotionFactory(discount_type=Promotion.TYPE_FIXED_AMOUNT, discount_value=Decimal("30000"))
    ship = PromotionFactory(discount_type=Promotion.TYPE_FREE_SHIPPING, discount_value=Decimal("0"))

    result = _evaluate(UserFactory(), codes=["NOPE", fixed.code, fixed.code.lower(), ship.code])

    assert result.codes == [fixed.code, ship.code]
    assert result.total_discount == Decimal("55000.00")


@pytest.mark.django_db
def test_codes_list_wins_over_single_code():
    listed = PromotionFactory(discount_type=Promotion.TYPE_FIXED_AMOUNT, discount_value=Decimal("1000"))
    result = _evaluate(UserFactory(), code="NOPE", codes=[listed.code])
    assert result.codes == [listed.code]


@pytest.mark.django_db
def test_discount_never_exceeds_subtotal_plus_shipping():
    promo = PromotionFactory(discount_type=Promotion.TYPE_FIXED_AMOUNT, discount_value=Decimal("900000"))
    result = _evaluate(UserFactory(), subtotal="50000", shipping="7000", code=promo.code)
    assert result.total_discount == Decimal("57000.00")


@pytest.mark.django_db
def test_total_usage_limit():
    promo = PromotionFactory(usage_limit_total=1, usage_count=1)
    with pytest.raises(PromotionError, match="usage limit"):
        _evaluate(UserFactory(), code=promo.code)


@pytest.mark.django_db
def test_per_user_usage_limit():
    user = UserFactory()
    promo = PromotionFactory(usage_limit_per_user=2)
    PromotionUsage.objects.create(promotion=promo, user=user, used_count=2)

    with pytest.raises(PromotionError, match="maximum number of times"):
        _evaluate(user, code=promo.code)
    assert _evaluate(UserFactory(), code=promo.code).codes == [promo.code]


@pytest.mark.django_db
def test_first_order_only_ignores_cancelled_orders():
    promo = PromotionFactory(first_order_only=True)
    user = UserFactory()
    OrderFactory(user=user, status=Order.STATUS_CANCELLED)
    assert _evaluate(user, code=promo.code).codes == [promo.code]

    OrderFactory(user=user, status=Order.STATUS_COMPLETED)
    with pytest.raises(PromotionError, match="first order"):
        _evaluate(user, code=promo.code)


@pytest.mark.django_db
def test_record_usage_bumps_counters_once_per_promotion():
    user = UserFactory()
    promo = PromotionFactory()

    record_promotion_usage(promotion_ids=[promo.id, promo.id], user=user)
    record_promotion_usage(promotion_ids=[promo.id], user=user)

    promo.refresh_from_db()
    assert promo.usage_count == 2
    assert PromotionUsage.objects.get(promotion=promo, user=user).used_count == 2


@pytest.mark.django_db
def test_record_usage_never_passes_the_total_limit():
    user = UserFactory()
    promo = PromotionFactory(usage_limit_total=1, usage_count=1)

    with pytest.raises(PromotionError, match="usage limit"):
        record_promotion_usage(promotion_ids=[promo.id], user=user)

    promo.refresh_from_db()
    assert promo.usage_count == 1
    assert not PromotionUsage.objects.filter(promotion=promo).exists()


@pytest.mark.django_db
def test_recheck_rejects_exhausted_or_missing_promotions():
    user = UserFactory()
    live = PromotionFactory(usage_limit_total=2, usage_count=1)
    spent = PromotionFactory(usage_limit_total=1, usage_count=1)

    recheck_promotions(promotion_ids=[live.id], user=user, subtotal=Decimal("100000"))
    with pytest.raises(PromotionError, match=spent.code):
        recheck_promotions(promotion_ids=[live.id, spent.id], user=user, subtotal=Decimal("100000"))
    with pytest.raises(PromotionError, match="no longer exists"):
        recheck_promotions(promotion_ids=[999999], user=user, subtotal=Decimal("100000"))


@pytest.mark.django_db
def test_active_coupons_are_grouped():
    PromotionFactory(discount_type=Promotion.TYPE_FREE_SHIPPING)
    PromotionFactory()
    PromotionFactory(is_active=False)
    grouped = list_active_coupons()
    assert len(grouped["free_shipping"]) == 1
    assert len(grouped["discount"]) == 1


def test_format_vnd():
    assert format_vnd(Decimal("270000")) == "270.000₫"
    assert format_vnd(Decimal("1234567.5")) == "1.234.568₫"


@pytest.mark.django_db
def test_active_coupons_endpoint(api_client):
    promo = PromotionFactory()
    resp = api_client.get("/api/v1/promotions/active/")
    assert resp.status_code == 200
    assert [c["code"] for c in resp.json()["discount"]] == [promo.code]


@pytest.mark.django_db
def test_eligibility_endpoint(api_client):
    promo = PromotionFactory(min_order_value=Decimal("200000"))
    api_client.force_authenticate(UserFactory())

    ok = api_client.get("/api/v1/promotions/eligibility/", {"code": promo.code}).json()
    assert ok["eligible"] is True
    assert ok["coupon"]["code"] == promo.code

    short = api_client.get("/api/v1/promotions/eligibility/", {"code": promo.code, "subtotal": "100000"}).json()
    assert short["eligible"] is False
    assert "200.000₫" in short["reason"]

    missing = api_client.get("/api/v1/promotions/eligibility/", {"code": "NOPE"}).json()
    assert missing == {"eligible": False, "reason": "Promotion code does not exist"}
