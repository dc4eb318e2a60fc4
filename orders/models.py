"""Order aggregate, status history, payment record and idempotency keys."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from django.conf import settings
from django.db import models

from . import state


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Order(TimeStampedModel):
    """Purchase order capturing a snapshot of a user's checkout.

    Totals are denormalized at creation time and never recomputed from the
    live catalog: `total_price = subtotal + shipping_fee + tax - discount`.
    """

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_CONFIRMED = OrderStatus.CONFIRMED
    STATUS_PROCESSING = OrderStatus.PROCESSING
    STATUS_SHIPPING = OrderStatus.SHIPPING
    STATUS_COMPLETED = OrderStatus.COMPLETED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_FAILED = OrderStatus.FAILED
    STATUS_REFUNDED = OrderStatus.REFUNDED
    STATUS_CHOICES = OrderStatus.choices

    METHOD_COD = PaymentMethod.COD
    METHOD_VNPAY = PaymentMethod.VNPAY
    METHOD_CHOICES = PaymentMethod.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.CASCADE)
    number = models.CharField(max_length=32, unique=True, null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_method = models.CharField(max_length=16, choices=METHOD_CHOICES, default=METHOD_COD)
    shipping_address = models.JSONField(default=dict)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    shipping_fee = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    promotions = models.ManyToManyField("promotions.Promotion", related_name="orders", blank=True)
    promotion_codes = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    is_paid = models.BooleanField(default=False)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=500, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    tracking_number = models.CharField(max_length=64, blank=True)
    shipping_provider = models.CharField(max_length=64, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="order_user_created_idx"),
            models.Index(fields=["status"], name="order_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total_price__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} user={self.user_id} status={self.status}"

    @property
    def item_count(self) -> int:
        return sum(int(i.quantity) for i in self.items.all())

    def as_state(self) -> state.OrderState:
        return state.OrderState(
            status=self.status,
            is_paid=self.is_paid,
            paid_at=self.paid_at,
            cancelled_at=self.cancelled_at,
            cancel_reason=self.cancel_reason,
            delivered_at=self.delivered_at,
        )

    def apply(self, change: state.Transition) -> None:
        new = change.state
        self.status = new.status
        self.is_paid = new.is_paid
        self.paid_at = new.paid_at
        self.cancelled_at = new.cancelled_at
        self.cancel_reason = new.cancel_reason
        self.delivered_at = new.delivered_at

    def confirm_payment(self, *, at) -> state.Transition:
        """Mark the order paid; a PENDING order moves to CONFIRMED."""
        change = state.confirm_payment(self.as_state(), at=at)
        self.apply(change)
        return change


class OrderItem(TimeStampedModel):
    """Line item within an order.

    Snapshots the product as it was at checkout (name, SKU, image, price,
    line discount and variant options).
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(
        "catalog.Product", null=True, blank=True, related_name="order_items", on_delete=models.SET_NULL
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant", null=True, blank=True, related_name="order_items", on_delete=models.SET_NULL
    )
    product_name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, blank=True)
    image = models.CharField(max_length=500, blank=True)
    variant_snapshot = models.JSONField(null=True, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_percent = models.PositiveSmallIntegerField(default=0)
    line_subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"


class OrderStatusHistory(models.Model):
    order = models.ForeignKey(Order, related_name="history", on_delete=models.CASCADE)
    status = models.CharField(max_length=16, choices=Order.STATUS_CHOICES)
    note = models.CharField(max_length=500, blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="+", on_delete=models.SET_NULL
    )
    timestamp = models.DateTimeField()

    class Meta:
        ordering = ["timestamp", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.order_id}: {self.status} at {self.timestamp:%Y-%m-%d %H:%M}"


@dataclass(frozen=True)
class PaymentSignal:
    """What a payment state change means for its order."""

    order_id: int
    succeeded: bool
    at: object
    reason: str = ""


class Payment(TimeStampedModel):
    STATUS_PENDING_PAYMENT = PaymentStatus.PENDING_PAYMENT
    STATUS_PROCESSING = PaymentStatus.PROCESSING
    STATUS_COMPLETED = PaymentStatus.COMPLETED
    STATUS_FAILED = PaymentStatus.FAILED
    STATUS_CANCELLED = PaymentStatus.CANCELLED
    STATUS_CHOICES = PaymentStatus.choices

    order = models.OneToOneField(Order, related_name="payment", on_delete=models.CASCADE)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="payments", on_delete=models.CASCADE)
    method = models.CharField(max_length=16, choices=Order.METHOD_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING_PAYMENT)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default="VND")
    transaction_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    details = models.JSONField(default=dict, blank=True)
    failure_reason = models.CharField(max_length=500, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["status"], name="payment_status_idx"),
            models.Index(fields=["method"], name="payment_method_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Payment#{self.id} order={self.order_id} {self.method}/{self.status}"

    def mark_completed(self, *, at, details: Optional[dict] = None) -> PaymentSignal:
        self.status = self.STATUS_COMPLETED
        self.processed_at = at
        if details:
            self.details = {**(self.details or {}), **details}
        return PaymentSignal(order_id=self.order_id, succeeded=True, at=at)

    def mark_failed(self, *, reason: str, at) -> PaymentSignal:
        self.status = self.STATUS_FAILED
        self.failure_reason = reason[:500]
        self.processed_at = at
        return PaymentSignal(order_id=self.order_id, succeeded=False, at=at, reason=reason)


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing."""

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]
