"""Promotion models.

A promotion is looked up by its upper-case code. Usage is tracked both as a
global counter and per user; both are only incremented once an order that
applied the code is committed.
"""

from decimal import Decimal

from common.choices import DiscountType, PromotionScope
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Promotion(TimeStampedModel):
    TYPE_PERCENTAGE = DiscountType.PERCENTAGE
    TYPE_FIXED_AMOUNT = DiscountType.FIXED_AMOUNT
    TYPE_FREE_SHIPPING = DiscountType.FREE_SHIPPING
    TYPE_CHOICES = DiscountType.choices

    code = models.CharField(max_length=40, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    discount_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    apply_to = models.CharField(max_length=16, choices=PromotionScope.choices, default=PromotionScope.ORDER)
    min_order_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    first_order_only = models.BooleanField(default=False)
    usage_limit_total = models.PositiveIntegerField(null=True, blank=True, help_text="Empty means unlimited")
    usage_limit_per_user = models.PositiveIntegerField(null=True, blank=True, help_text="Empty means unlimited")
    usage_count = models.PositiveIntegerField(default=0)
    priority = models.IntegerField(default=0)

    class Meta:
        ordering = ["-priority", "-created_at"]
        indexes = [
            models.Index(fields=["is_active", "start_date", "end_date"], name="promotion_window_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="promotion_value_non_negative", condition=models.Q(discount_value__gte=0)),
        ]

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return self.code


class PromotionUsage(models.Model):
    """How many times one user has used one promotion."""

    promotion = models.ForeignKey(Promotion, related_name="usages", on_delete=models.CASCADE)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="promotion_usages", on_delete=models.CASCADE)
    used_count = models.PositiveIntegerField(default=0)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["promotion", "user"], name="unique_usage_per_user"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.promotion_id}:{self.user_id} x{self.used_count}"
