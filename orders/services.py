"""Order services: checkout, gateway callback, cancellation and admin updates.

Validation always completes before the first write. Each write sequence
(stock commit, order rows, payment, promotion usage, cart clear) runs in a
single `transaction.atomic()` block, and notifications fire only after it
commits.

COD orders are persisted immediately. VNPay orders are staged (see
`orders.staging`) and only become Orders when the gateway reports success.
"""

import hashlib
import json
import logging
import secrets
from dataclasses import asdict, dataclass, replace
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Sequence, Tuple

from cart.selectors import cart_lines
from cart.services import clear_cart
from catalog.selectors import products_by_id
from common.exceptions import BadRequest, Forbidden, NotFound
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from inventory.services import StockError, StockLine, commit_stock, rollback_stock, validate_line
from notifications.services import notify_order_created, notify_order_status, notify_payment_result
from promotions.services import PromotionError, evaluate_promotions, recheck_promotions, record_promotion_usage

from . import state
from .models import IdempotencyKey, Order, OrderItem, OrderStatusHistory, Payment, PaymentSignal
from .selectors import invalidate_order_cache
from .shipping import calculate_shipping_fee, shipping_tier_info
from .staging import get_store
from .vnpay import build_payment_url, to_gateway_amount, verify_return

logger = logging.getLogger("aquashop.orders")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
REQUIRED_ADDRESS_FIELDS = ("full_name", "phone", "street", "ward", "district", "city")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Cart snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SnapshotLine:
    product_id: int
    product_name: str
    image: str
    sku: str
    quantity: int
    unit_price: Decimal
    line_discount_percent: int
    line_subtotal: Decimal
    variant_id: Optional[int] = None
    variant_snapshot: Optional[dict] = None

    def to_payload(self) -> dict:
        data = asdict(self)
        data["unit_price"] = str(self.unit_price)
        data["line_subtotal"] = str(self.line_subtotal)
        return data

    @classmethod
    def from_payload(cls, data: dict) -> "SnapshotLine":
        return cls(
            **{
                **data,
                "unit_price": Decimal(data["unit_price"]),
                "line_subtotal": Decimal(data["line_subtotal"]),
            }
        )

    @property
    def stock_line(self) -> StockLine:
        return StockLine(product_id=self.product_id, quantity=self.quantity, variant_id=self.variant_id)


@dataclass(frozen=True)
class CartSnapshot:
    lines: tuple[SnapshotLine, ...]
    subtotal: Decimal


def _snapshot_line(product, variant, quantity: int) -> SnapshotLine:
    if variant is not None:
        unit_price = Decimal(variant.price)
        sku = variant.sku or product.sku
        variant_snapshot = {"sku": variant.sku, "options": variant.option_values}
    else:
        unit_price = Decimal(product.unit_price)
        sku = product.sku
        variant_snapshot = None
    percent = int(product.discount or 0)
    line_subtotal = _money(unit_price * quantity * (Decimal("100") - percent) / Decimal("100"))
    return SnapshotLine(
        product_id=product.id,
        product_name=product.name,
        image=product.primary_image,
        sku=sku,
        quantity=quantity,
        unit_price=_money(unit_price),
        line_discount_percent=percent,
        line_subtotal=line_subtotal,
        variant_id=variant.id if variant is not None else None,
        variant_snapshot=variant_snapshot,
    )


def build_cart_snapshot(*, user) -> CartSnapshot:
    """Validate the user's cart and freeze it into order lines.

    Raises BadRequest for an empty cart, a deleted product, or any line that
    fails stock validation. Nothing is written.
    """

    items = cart_lines(user=user)
    if not items:
        raise BadRequest("Your cart is empty")

    products = products_by_id(item.product_id for item in items if item.product_id)
    lines = []
    for item in items:
        product = products.get(item.product_id) if item.product_id else None
        if product is None:
            raise BadRequest("A product in your cart no longer exists, please remove it and try again")
        variant = validate_line(product=product, variant_id=item.variant_id, quantity=int(item.quantity))
        lines.append(_snapshot_line(product, variant, int(item.quantity)))
    return CartSnapshot(lines=tuple(lines), subtotal=_money(sum((line.line_subtotal for line in lines), ZERO)))


def _revalidate(lines: Sequence[SnapshotLine]) -> None:
    products = products_by_id(line.product_id for line in lines)
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise StockError(f'Product "{line.product_name}" no longer exists')
        validate_line(product=product, variant_id=line.variant_id, quantity=line.quantity)


# ---------------------------------------------------------------------------
# Order persistence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    shipping_fee: Decimal
    discount: Decimal
    tax: Decimal = ZERO

    @property
    def total_price(self) -> Decimal:
        return _money(self.subtotal + self.shipping_fee + self.tax - self.discount)

    def to_payload(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "shipping_fee": str(self.shipping_fee),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "total_price": str(self.total_price),
        }

    @classmethod
    def from_payload(cls, data: dict) -> "Totals":
        return cls(
            subtotal=Decimal(data["subtotal"]),
            shipping_fee=Decimal(data["shipping_fee"]),
            discount=Decimal(data["discount"]),
            tax=Decimal(data.get("tax", "0")),
        )


@dataclass
class OrderCreationResult:
    order: Optional[Order] = None
    payment: Optional[Payment] = None
    payment_url: Optional[str] = None
    transaction_ref: Optional[str] = None
    totals: Optional[Totals] = None


@dataclass(frozen=True)
class GatewayOutcome:
    status: str  # success | failed | invalid | not_found
    transaction_ref: str = ""
    order: Optional[Order] = None
    reason: str = ""


def _add_history(order: Order, entry: state.HistoryEntry) -> OrderStatusHistory:
    return OrderStatusHistory.objects.create(
        order=order,
        status=entry.status,
        note=entry.note[:500],
        updated_by_id=entry.updated_by_id,
        timestamp=entry.timestamp,
    )


def _log_status_change(order: Order, previous: str) -> None:
    logger.info(
        "order.status_changed",
        extra={
            "event": "order.status_changed",
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": previous,
            "status_to": order.status,
        },
    )


def _persist_order(
    *,
    user,
    lines: Sequence[SnapshotLine],
    totals: Totals,
    shipping_address: dict,
    payment_method: str,
    promotion_ids: Sequence[int],
    promotion_codes: Sequence[str],
    notes: str,
    at,
) -> Order:
    """Write the Order, its items and the initial history entry; commit stock.

    Must run inside `transaction.atomic()`.
    """

    order = Order.objects.create(
        user=user,
        status=Order.STATUS_PENDING,
        payment_method=payment_method,
        shipping_address=shipping_address,
        subtotal=totals.subtotal,
        shipping_fee=totals.shipping_fee,
        tax=totals.tax,
        discount=totals.discount,
        total_price=totals.total_price,
        promotion_codes=list(promotion_codes),
        notes=notes or "",
    )
    order.number = f"ORD{timezone.localtime(at):%y%m%d}{int(order.id):05d}"
    order.save(update_fields=["number"])

    commit_stock([line.stock_line for line in lines], reference=order.number)

    OrderItem.objects.bulk_create(
        [
            OrderItem(
                order=order,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.product_name,
                sku=line.sku,
                image=line.image,
                variant_snapshot=line.variant_snapshot,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_percent=line.line_discount_percent,
                line_subtotal=line.line_subtotal,
            )
            for line in lines
        ]
    )
    if promotion_ids:
        order.promotions.set(promotion_ids)
    _add_history(
        order,
        state.HistoryEntry(status=Order.STATUS_PENDING, timestamp=at, note="Order placed", updated_by_id=user.id),
    )
    return order


def _finish_checkout(*, order: Order, user, promotion_ids: Sequence[int], at) -> None:
    if promotion_ids:
        record_promotion_usage(promotion_ids=promotion_ids, user=user, now=at)
    clear_cart(user=user)
    notify_order_created(order)


def _validate_address(shipping_address) -> dict:
    address = shipping_address if isinstance(shipping_address, dict) else {}
    missing = [name for name in REQUIRED_ADDRESS_FIELDS if not str(address.get(name) or "").strip()]
    if missing:
        raise BadRequest(f"Missing shipping address fields: {', '.join(missing)}")
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in address.items()}


def _new_transaction_ref(at) -> str:
    return f"{timezone.localtime(at):%y%m%d%H%M%S}{secrets.token_hex(4).upper()}"


def create_order(
    *,
    user,
    shipping_address: dict,
    payment_method: str,
    promotion_code: Optional[str] = None,
    promotion_codes: Optional[Sequence[str]] = None,
    notes: str = "",
    client_ip: Optional[str] = None,
) -> OrderCreationResult:
    """Check out the user's cart.

    COD: the order is committed now and returned. VNPay: the order is staged
    and the result carries the gateway `payment_url` and `transaction_ref`.
    """

    address = _validate_address(shipping_address)
    if payment_method not in (Order.METHOD_COD, Order.METHOD_VNPAY):
        raise BadRequest(f"Unsupported payment method: {payment_method}")

    snapshot = build_cart_snapshot(user=user)
    shipping_fee = calculate_shipping_fee(snapshot.subtotal)
    promo = evaluate_promotions(
        subtotal=snapshot.subtotal,
        shipping_fee=shipping_fee,
        user=user,
        code=promotion_code,
        codes=promotion_codes,
    )
    totals = Totals(subtotal=snapshot.subtotal, shipping_fee=_money(shipping_fee), discount=promo.total_discount)
    now = timezone.now()

    if payment_method == Order.METHOD_VNPAY:
        ref = _new_transaction_ref(now)
        payload = {
            "user_id": user.id,
            "items": [line.to_payload() for line in snapshot.lines],
            "totals": totals.to_payload(),
            "shipping_address": address,
            "promotion_ids": promo.promotion_ids,
            "promotion_codes": promo.codes,
            "notes": notes or "",
            "payment_method": payment_method,
            "client_ip": client_ip,
        }
        get_store().store(ref, payload)
        payment_url = build_payment_url(
            amount=totals.total_price,
            txn_ref=ref,
            order_info=f"Payment for order {ref}",
            return_url=settings.VNPAY_RETURN_URL,
            ip_addr=client_ip,
            now=now,
        )
        logger.info(
            "order.staged",
            extra={
                "event": "order.staged",
                "user_id": user.id,
                "transaction_ref": ref,
                "total_price": str(totals.total_price),
            },
        )
        return OrderCreationResult(payment_url=payment_url, transaction_ref=ref, totals=totals)

    with transaction.atomic():
        order = _persist_order(
            user=user,
            lines=snapshot.lines,
            totals=totals,
            shipping_address=address,
            payment_method=payment_method,
            promotion_ids=promo.promotion_ids,
            promotion_codes=promo.codes,
            notes=notes,
            at=now,
        )
        payment = Payment.objects.create(
            order=order,
            user=user,
            method=Order.METHOD_COD,
            status=Payment.STATUS_PROCESSING,
            amount=totals.total_price,
            ip_address=client_ip,
        )
        _finish_checkout(order=order, user=user, promotion_ids=promo.promotion_ids, at=now)

    logger.info(
        "order.created",
        extra={
            "event": "order.created",
            "order_id": order.id,
            "user_id": user.id,
            "payment_method": payment_method,
            "total_price": str(order.total_price),
        },
    )
    return OrderCreationResult(order=order, payment=payment, totals=totals)


def preview_order(*, user, promotion_code: Optional[str] = None) -> dict:
    """Checkout totals for the current cart without touching anything.

    Unavailable products are left out instead of failing, and promotion
    problems are reported under `promotion.error`.
    """

    items = cart_lines(user=user)
    if not items:
        raise BadRequest("Your cart is empty")

    lines = []
    for item in items:
        product = item.product
        if product is None or product.status != product.STATUS_ACTIVE:
            continue
        variant = item.variant if product.has_variants else None
        if product.has_variants and (variant is None or not variant.is_active):
            continue
        line = _snapshot_line(product, variant, int(item.quantity))
        available = int(variant.stock if variant is not None else product.stock)
        lines.append({**line.to_payload(), "stock": available})

    subtotal = _money(sum((Decimal(row["line_subtotal"]) for row in lines), ZERO))
    shipping_fee = _money(calculate_shipping_fee(subtotal))
    promotion = None
    discount = ZERO
    if promotion_code:
        try:
            result = evaluate_promotions(subtotal=subtotal, shipping_fee=shipping_fee, user=user, code=promotion_code)
        except PromotionError as exc:
            promotion = {"error": str(exc)}
        else:
            discount = result.total_discount
            applied = result.applied[0] if result.applied else None
            if applied is not None:
                promotion = {
                    "code": applied.code,
                    "discount_type": applied.discount_type,
                    "amount": str(applied.amount),
                }

    return {
        "items": lines,
        "subtotal": subtotal,
        "shipping_fee": shipping_fee,
        "shipping_tier": shipping_tier_info(subtotal),
        "discount": discount,
        "total_price": _money(subtotal + shipping_fee - discount),
        "promotion": promotion,
    }


# ---------------------------------------------------------------------------
# Payment signals and gateway callback
# ---------------------------------------------------------------------------


def _apply_payment_signal(order: Order, signal: PaymentSignal, *, actor_id: Optional[int] = None) -> None:
    """Carry a payment outcome over to its order. Runs inside the caller's transaction."""

    previous = order.status
    if signal.succeeded:
        change = order.confirm_payment(at=signal.at)
    else:
        change = state.fail_payment(order.as_state(), at=signal.at, reason=signal.reason or "Payment failed")
        if change is None:
            return
        order.apply(change)
    order.save(update_fields=["status", "is_paid", "paid_at", "updated_at"])
    _add_history(order, replace(change.history, updated_by_id=actor_id))
    if order.status != previous:
        _log_status_change(order, previous)


def handle_vnpay_return(params) -> GatewayOutcome:
    """Settle a VNPay return call.

    Calling this twice for the same transaction never creates a second
    order: the staged entry is consumed once and `Payment.transaction_id`
    is unique.
    """

    result = verify_return(params)
    ref = result.txn_ref
    if not result.is_verified:
        logger.warning(
            "payment.vnpay_invalid_signature",
            extra={"event": "payment.vnpay_invalid_signature", "transaction_ref": ref},
        )
        return GatewayOutcome(status="invalid", transaction_ref=ref, reason="invalid_signature")

    store = get_store()
    if not result.is_success:
        store.remove(ref)
        logger.info(
            "payment.vnpay_failed",
            extra={"event": "payment.vnpay_failed", "transaction_ref": ref, "response_code": result.response_code},
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason=f"gateway_{result.response_code}")

    staged = store.consume(ref)
    if staged is None:
        existing = Payment.objects.select_related("order").filter(transaction_id=ref).first()
        logger.info(
            "payment.vnpay_not_found",
            extra={"event": "payment.vnpay_not_found", "transaction_ref": ref, "already_committed": bool(existing)},
        )
        return GatewayOutcome(
            status="not_found", transaction_ref=ref, order=existing.order if existing else None, reason="not_found"
        )

    payload = staged.payload
    totals = Totals.from_payload(payload["totals"])
    if result.amount is None or to_gateway_amount(result.amount) != to_gateway_amount(totals.total_price):
        logger.error(
            "payment.vnpay_amount_mismatch",
            extra={
                "event": "payment.vnpay_amount_mismatch",
                "transaction_ref": ref,
                "expected": str(totals.total_price),
                "received": str(result.amount),
            },
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason="amount_mismatch")

    User = get_user_model()
    user = User.objects.filter(id=payload["user_id"]).first()
    if user is None:
        logger.error(
            "payment.vnpay_user_missing",
            extra={"event": "payment.vnpay_user_missing", "transaction_ref": ref, "user_id": payload["user_id"]},
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason="user_missing")

    lines = [SnapshotLine.from_payload(item) for item in payload["items"]]
    promotion_ids = payload.get("promotion_ids") or []
    now = timezone.now()
    try:
        with transaction.atomic():
            _revalidate(lines)
            recheck_promotions(promotion_ids=promotion_ids, user=user, subtotal=totals.subtotal)
            order = _persist_order(
                user=user,
                lines=lines,
                totals=totals,
                shipping_address=payload["shipping_address"],
                payment_method=Order.METHOD_VNPAY,
                promotion_ids=promotion_ids,
                promotion_codes=payload.get("promotion_codes") or [],
                notes=payload.get("notes") or "",
                at=now,
            )
            payment = Payment(
                order=order,
                user=user,
                method=Order.METHOD_VNPAY,
                status=Payment.STATUS_PENDING_PAYMENT,
                amount=totals.total_price,
                transaction_id=ref,
                ip_address=payload.get("client_ip"),
            )
            signal = payment.mark_completed(
                at=now,
                details={
                    "transaction_no": result.transaction_no,
                    "bank_code": result.raw.get("vnp_BankCode", ""),
                    "response_code": result.response_code,
                    "pay_date": result.raw.get("vnp_PayDate", ""),
                },
            )
            payment.save()
            _apply_payment_signal(order, signal)
            _finish_checkout(order=order, user=user, promotion_ids=promotion_ids, at=now)
    except PromotionError as exc:
        logger.error(
            "payment.vnpay_promotion_exhausted",
            extra={
                "event": "payment.vnpay_promotion_exhausted",
                "transaction_ref": ref,
                "user_id": user.id,
                "detail": str(exc),
                "amount": str(totals.total_price),
            },
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason="promotion_exhausted")
    except StockError as exc:
        logger.error(
            "payment.vnpay_out_of_stock",
            extra={
                "event": "payment.vnpay_out_of_stock",
                "transaction_ref": ref,
                "user_id": user.id,
                "detail": str(exc),
                "amount": str(totals.total_price),
            },
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason="out_of_stock")
    except IntegrityError:
        existing = Payment.objects.select_related("order").filter(transaction_id=ref).first()
        logger.warning(
            "payment.vnpay_duplicate", extra={"event": "payment.vnpay_duplicate", "transaction_ref": ref}
        )
        return GatewayOutcome(
            status="not_found", transaction_ref=ref, order=existing.order if existing else None, reason="duplicate"
        )
    except DatabaseError as exc:
        logger.error(
            "payment.vnpay_commit_failed",
            extra={
                "event": "payment.vnpay_commit_failed",
                "transaction_ref": ref,
                "user_id": user.id,
                "detail": str(exc),
                "amount": str(totals.total_price),
            },
        )
        return GatewayOutcome(status="failed", transaction_ref=ref, reason="commit_failed")

    logger.info(
        "order.created",
        extra={
            "event": "order.created",
            "order_id": order.id,
            "user_id": user.id,
            "payment_method": Order.METHOD_VNPAY,
            "transaction_ref": ref,
            "total_price": str(order.total_price),
        },
    )
    return GatewayOutcome(status="success", transaction_ref=ref, order=order)


# ---------------------------------------------------------------------------
# Cancellation and admin changes
# ---------------------------------------------------------------------------


def _lock_order(order_id: int) -> Order:
    try:
        return Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist:
        raise NotFound("Order not found")


def _cancel(order: Order, *, actor, reason: str) -> Order:
    try:
        change = state.cancel(order.as_state(), at=timezone.now(), reason=reason, actor_id=actor.id)
    except state.TransitionError:
        raise BadRequest(f"Cannot cancel an order that is {order.get_status_display().lower()}")

    previous = order.status
    order.apply(change)
    order.cancelled_by = actor
    order.save(update_fields=["status", "cancelled_at", "cancel_reason", "cancelled_by", "updated_at"])
    _add_history(order, change.history)

    lines = [
        StockLine(product_id=item.product_id, quantity=int(item.quantity), variant_id=item.variant_id)
        for item in order.items.all()
        if item.product_id
    ]
    restored = rollback_stock(lines, reference=order.number or "")
    Payment.objects.filter(order=order).exclude(status=Payment.STATUS_COMPLETED).update(
        status=Payment.STATUS_CANCELLED, updated_at=timezone.now()
    )
    transaction.on_commit(lambda: invalidate_order_cache(order.id))
    _log_status_change(order, previous)
    logger.info(
        "order.cancelled",
        extra={
            "event": "order.cancelled",
            "order_id": order.id,
            "actor_id": actor.id,
            "lines_restored": restored,
            "lines_total": order.items.count(),
        },
    )
    notify_order_status(order, Order.STATUS_CANCELLED, f"Order #{order.number} was cancelled: {reason}")
    return order


def cancel_order(*, order_id: int, user, reason: str = "") -> Order:
    """Cancel one of the user's own orders and return its stock."""

    reason = (reason or "").strip() or "No reason given"
    with transaction.atomic():
        order = _lock_order(order_id)
        if order.user_id != user.id:
            raise Forbidden("You do not have permission to cancel this order")
        _cancel(order, actor=user, reason=reason)
    return Order.objects.get(id=order.id)


STATUS_MESSAGES = {
    Order.STATUS_CONFIRMED: "Order #{number} has been confirmed",
    Order.STATUS_PROCESSING: "Order #{number} is being prepared",
    Order.STATUS_SHIPPING: "Order #{number} has been handed to the carrier",
    Order.STATUS_COMPLETED: "Order #{number} has been delivered",
    Order.STATUS_REFUNDED: "Order #{number} has been refunded",
    Order.STATUS_FAILED: "Order #{number} could not be completed",
}


def update_order_status(
    *,
    order_id: int,
    status: str,
    actor,
    note: str = "",
    tracking_number: str = "",
    shipping_provider: str = "",
) -> Order:
    """Admin status change following the transition table.

    Cancelling goes through the same path as a buyer cancellation so stock
    is returned. Completing an unpaid COD order marks it paid.
    """

    if status not in dict(Order.STATUS_CHOICES):
        raise BadRequest(f"Unknown order status: {status}")

    with transaction.atomic():
        order = _lock_order(order_id)
        if status == Order.STATUS_CANCELLED:
            _cancel(order, actor=actor, reason=note or "Cancelled by staff")
        else:
            now = timezone.now()
            try:
                change = state.transition(order.as_state(), status, at=now, note=note, actor_id=actor.id)
            except state.TransitionError as exc:
                raise BadRequest(str(exc))
            previous = order.status
            order.apply(change)
            if tracking_number:
                order.tracking_number = tracking_number
            if shipping_provider:
                order.shipping_provider = shipping_provider
            order.save()
            _add_history(order, change.history)

            if status == Order.STATUS_COMPLETED and order.payment_method == Order.METHOD_COD and not order.is_paid:
                payment = Payment.objects.select_for_update().filter(order=order).first()
                if payment is not None:
                    signal = payment.mark_completed(at=now, details={"collected_by": actor.id})
                    payment.save()
                    _apply_payment_signal(order, signal, actor_id=actor.id)

            _log_status_change(order, previous)
            message = STATUS_MESSAGES.get(status, "Order #{number} was updated").format(number=order.number)
            notify_order_status(order, status, f"{message}. {note}".strip() if note else message)
            transaction.on_commit(lambda: invalidate_order_cache(order.id))
    return Order.objects.get(id=order.id)


def record_payment_result(*, order_id: int, actor, succeeded: bool, reason: str = "") -> Payment:
    """Record the outcome of a payment collected outside the gateway (e.g. COD)."""

    with transaction.atomic():
        order = _lock_order(order_id)
        payment = Payment.objects.select_for_update().filter(order=order).first()
        if payment is None:
            raise NotFound("Payment not found")
        if payment.status in (Payment.STATUS_COMPLETED, Payment.STATUS_CANCELLED):
            raise BadRequest(f"Payment is already {payment.get_status_display().lower()}")

        now = timezone.now()
        if succeeded:
            signal = payment.mark_completed(at=now, details={"recorded_by": actor.id})
        else:
            signal = payment.mark_failed(reason=reason or "Payment failed", at=now)
        payment.save()
        _apply_payment_signal(order, signal, actor_id=actor.id)

        logger.info(
            "payment.recorded",
            extra={
                "event": "payment.recorded",
                "order_id": order.id,
                "payment_id": payment.id,
                "succeeded": succeeded,
                "actor_id": actor.id,
            },
        )
        message = (
            f"Payment for order #{order.number} was received"
            if succeeded
            else f"Payment for order #{order.number} failed: {signal.reason}"
        )
        notify_payment_result(order, succeeded, message)
        transaction.on_commit(lambda: invalidate_order_cache(order.id))
    return payment


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists and the stored `request_hash` differs from the provided one, returns 409.
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - Error responses (>= 500) are not stored so the client may retry.
    """

    scope = f"user:{getattr(user, 'id', None)}" if getattr(user, "id", None) else "anon"
    method = str(method).upper()
    path = str(path)

    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user=user if getattr(user, "id", None) else None,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=timezone.now() + timedelta(hours=24),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            return {"detail": "Idempotency key reused with different request payload"}, 409
        if idem.response_json is not None and idem.response_code is not None:
            return idem.response_json, int(idem.response_code)
        return {"detail": "Request in progress"}, 409

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise

    if code >= 500:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        return body, code
    safe_body = json.loads(json.dumps(body, default=str))
    IdempotencyKey.objects.filter(id=idem.id).update(response_json=safe_body, response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
