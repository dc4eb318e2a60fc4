"""Catalog app models.

Products carry their own stock counters; products with variants track
stock per variant instead. `sold_count` always lives on the product.
"""

from decimal import Decimal

from common.choices import ProductStatus
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Category(TimeStampedModel):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Product(TimeStampedModel):
    """Sellable product with price, percentage discount and stock."""

    STATUS_ACTIVE = ProductStatus.ACTIVE
    STATUS_INACTIVE = ProductStatus.INACTIVE
    STATUS_OUT_OF_STOCK = ProductStatus.OUT_OF_STOCK
    STATUS_CHOICES = ProductStatus.choices

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True)
    sku = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(
        Category, null=True, blank=True, related_name="products", on_delete=models.SET_NULL
    )
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    sale_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    discount = models.PositiveSmallIntegerField(default=0, help_text="Line discount in percent")
    stock = models.IntegerField(default=0)
    sold_count = models.IntegerField(default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    has_variants = models.BooleanField(default=False)
    images = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(name="product_stock_non_negative", condition=models.Q(stock__gte=0)),
            models.CheckConstraint(name="product_sold_non_negative", condition=models.Q(sold_count__gte=0)),
            models.CheckConstraint(name="product_discount_le_100", condition=models.Q(discount__lte=100)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    @property
    def unit_price(self) -> Decimal:
        return self.sale_price or self.price

    @property
    def primary_image(self) -> str:
        if not self.images:
            return ""
        first = self.images[0]
        if isinstance(first, dict):
            return first.get("url", "")
        return str(first)


class ProductVariant(TimeStampedModel):
    """Variant of a product (e.g. tank size) with its own price and stock."""

    product = models.ForeignKey(Product, related_name="variants", on_delete=models.CASCADE)
    sku = models.CharField(max_length=64, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    stock = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    option_values = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="variant_stock_non_negative", condition=models.Q(stock__gte=0)),
            models.CheckConstraint(name="variant_price_non_negative", condition=models.Q(price__gte=0)),
        ]
        indexes = [
            models.Index(fields=["product", "is_active"], name="variant_product_active_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product.name} [{self.sku or self.id}]"
