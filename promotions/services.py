"""Promotion evaluation and usage recording.

`evaluate_promotions` is side-effect free: it only decides which codes
apply and how much they take off. Usage counters move in
`record_promotion_usage`, which the order services call once the order
is committed.

A list of codes is evaluated leniently (bad codes are dropped) while a
single explicit code is strict and raises `PromotionError`.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from common.exceptions import BadRequest
from django.db.models import F, Q
from django.utils import timezone

from .models import Promotion, PromotionUsage

logger = logging.getLogger("aquashop.promotions")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PromotionError(BadRequest):
    """Raised when a single explicit promotion code cannot be applied."""


@dataclass(frozen=True)
class AppliedPromotion:
    promotion_id: int
    code: str
    discount_type: str
    amount: Decimal


@dataclass(frozen=True)
class PromotionResult:
    total_discount: Decimal = ZERO
    applied: tuple[AppliedPromotion, ...] = field(default_factory=tuple)

    @property
    def promotion_ids(self) -> list[int]:
        return [p.promotion_id for p in self.applied]

    @property
    def codes(self) -> list[str]:
        return [p.code for p in self.applied]


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_live_promotion(code: str, *, now=None) -> Optional[Promotion]:
    """Return the active promotion for `code` whose window contains `now`."""

    now = now or timezone.now()
    return Promotion.objects.filter(
        code=normalize_code(code), is_active=True, start_date__lte=now, end_date__gte=now
    ).first()


def user_usage_count(promotion: Promotion, user) -> int:
    if not getattr(user, "id", None):
        return 0
    used = (
        PromotionUsage.objects.filter(promotion=promotion, user_id=user.id)
        .values_list("used_count", flat=True)
        .first()
    )
    return int(used or 0)


def _has_prior_orders(user) -> bool:
    from orders.models import Order

    return Order.objects.filter(user_id=user.id).exclude(status=Order.STATUS_CANCELLED).exists()


def rejection_reason(promotion: Promotion, *, user, subtotal: Decimal, check_min_order: bool = True) -> Optional[str]:
    """Return why `promotion` cannot be used by `user`, or None when it can."""

    if promotion.usage_limit_total is not None and promotion.usage_count >= promotion.usage_limit_total:
        return "Promotion code has reached its usage limit"
    per_user = promotion.usage_limit_per_user
    if per_user is not None and user_usage_count(promotion, user) >= per_user:
        return "You have already used this promotion code the maximum number of times"
    if promotion.first_order_only and getattr(user, "id", None) and _has_prior_orders(user):
        return "Promotion code is only valid for your first order"
    if check_min_order and subtotal < promotion.min_order_value:
        return f"Order subtotal must be at least {format_vnd(promotion.min_order_value)}"
    return None


def compute_discount(promotion: Promotion, *, subtotal: Decimal, shipping_fee: Decimal) -> Decimal:
    value = Decimal(promotion.discount_value)
    if promotion.discount_type == Promotion.TYPE_PERCENTAGE:
        amount = subtotal * value / Decimal("100")
        if promotion.max_discount is not None:
            amount = min(amount, Decimal(promotion.max_discount))
    elif promotion.discount_type == Promotion.TYPE_FIXED_AMOUNT:
        amount = value
    elif promotion.discount_type == Promotion.TYPE_FREE_SHIPPING:
        amount = shipping_fee
        if promotion.max_discount is not None:
            amount = min(amount, Decimal(promotion.max_discount))
    else:
        amount = ZERO
    return max(amount, ZERO).quantize(CENT, rounding=ROUND_HALF_UP)


def evaluate_promotions(
    *,
    subtotal: Decimal,
    shipping_fee: Decimal,
    user,
    code: Optional[str] = None,
    codes: Optional[Sequence[str]] = None,
    now=None,
) -> PromotionResult:
    """Compute the discount for the submitted promotion code(s).

    `codes` wins over `code` when both are given. Codes are evaluated in
    submission order; repeated codes count once. The summed discount never
    exceeds `subtotal + shipping_fee`.
    """

    now = now or timezone.now()
    strict = not codes and bool(normalize_code(code))
    submitted = list(codes) if codes else [code]

    applied: list[AppliedPromotion] = []
    seen: set[str] = set()
    total = ZERO
    for raw in submitted:
        normalized = normalize_code(raw)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)

        promotion = find_live_promotion(normalized, now=now)
        if promotion is None:
            reason = "Promotion code does not exist or has expired"
        else:
            reason = rejection_reason(promotion, user=user, subtotal=subtotal)
        if reason:
            if strict:
                raise PromotionError(reason)
            logger.info(
                "promotion.skipped",
                extra={
                    "event": "promotion.skipped",
                    "code": normalized,
                    "reason": reason,
                    "user_id": getattr(user, "id", None),
                },
            )
            continue

        amount = compute_discount(promotion, subtotal=subtotal, shipping_fee=shipping_fee)
        applied.append(
            AppliedPromotion(
                promotion_id=promotion.id, code=promotion.code, discount_type=promotion.discount_type, amount=amount
            )
        )
        total += amount

    ceiling = subtotal + shipping_fee
    if total > ceiling:
        total = ceiling
    return PromotionResult(total_discount=total.quantize(CENT, rounding=ROUND_HALF_UP), applied=tuple(applied))


def recheck_promotions(*, promotion_ids: Iterable[int], user, subtotal: Decimal) -> None:
    """Lock the promotion rows and re-run the usage checks before a deferred commit.

    Raises PromotionError when any promotion is gone or no longer usable by `user`.
    Must run inside `transaction.atomic()`.
    """

    ids = list(dict.fromkeys(promotion_ids))
    if not ids:
        return
    promotions = {p.id: p for p in Promotion.objects.select_for_update().filter(id__in=ids)}
    for promotion_id in ids:
        promotion = promotions.get(promotion_id)
        if promotion is None:
            raise PromotionError("Promotion code no longer exists")
        reason = rejection_reason(promotion, user=user, subtotal=subtotal)
        if reason:
            raise PromotionError(f"{promotion.code}: {reason}")


def record_promotion_usage(*, promotion_ids: Iterable[int], user, now=None) -> None:
    """Count one use per promotion for a committed order.

    The counter UPDATE runs first so the promotion row is locked before the
    per-user row is created or bumped. It only matches while the total limit
    has room, so concurrent orders cannot push the count past it; a miss
    raises PromotionError and rolls back the caller's transaction.
    """

    now = now or timezone.now()
    for promotion_id in dict.fromkeys(promotion_ids):
        bumped = (
            Promotion.objects.filter(id=promotion_id)
            .filter(Q(usage_limit_total__isnull=True) | Q(usage_count__lt=F("usage_limit_total")))
            .update(usage_count=F("usage_count") + 1)
        )
        if not bumped:
            logger.warning(
                "promotion.limit_reached",
                extra={"event": "promotion.limit_reached", "promotion_id": promotion_id, "user_id": user.id},
            )
            raise PromotionError("Promotion code has reached its usage limit")
        usage, created = PromotionUsage.objects.get_or_create(
            promotion_id=promotion_id, user=user, defaults={"used_count": 1, "last_used_at": now}
        )
        if not created:
            PromotionUsage.objects.filter(id=usage.id).update(used_count=F("used_count") + 1, last_used_at=now)
        logger.info(
            "promotion.usage_recorded",
            extra={"event": "promotion.usage_recorded", "promotion_id": promotion_id, "user_id": user.id},
        )


def check_coupon_eligibility(*, code: str, user, subtotal: Decimal = ZERO, now=None) -> dict:
    """Tell a shopper whether a code would apply, without raising.

    The minimum order value is only checked when a positive subtotal is given.
    """

    normalized = normalize_code(code)
    promotion = Promotion.objects.filter(code=normalized).first()
    if promotion is None:
        return {"eligible": False, "reason": "Promotion code does not exist"}
    now = now or timezone.now()
    if not promotion.is_active or not (promotion.start_date <= now <= promotion.end_date):
        return {"eligible": False, "reason": "Promotion code has expired or is no longer available"}
    reason = rejection_reason(promotion, user=user, subtotal=subtotal, check_min_order=subtotal > 0)
    if reason:
        result = {"eligible": False, "reason": reason}
        if subtotal > 0 and subtotal < promotion.min_order_value:
            result["min_order_value"] = promotion.min_order_value
        return result
    return {"eligible": True, "promotion": promotion}


def list_active_coupons(*, now=None) -> dict:
    """Live coupons grouped into free-shipping and discount buckets."""

    now = now or timezone.now()
    coupons = Promotion.objects.filter(is_active=True, start_date__lte=now, end_date__gte=now).order_by(
        "-priority", "-created_at"
    )
    grouped = {"free_shipping": [], "discount": []}
    for coupon in coupons:
        bucket = "free_shipping" if coupon.discount_type == Promotion.TYPE_FREE_SHIPPING else "discount"
        grouped[bucket].append(coupon)
    return grouped


def format_vnd(amount) -> str:
    """Format an amount the way the shop displays prices, e.g. 270.000₫."""

    whole = int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return f"{whole:,}".replace(",", ".") + "₫"
