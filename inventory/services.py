"""Inventory services: stock validation, commit and rollback for orders.

Every stock change is a single conditional UPDATE using F() expressions,
so concurrent orders for the same product never lose a decrement. Each
line is its own atomic statement; callers that need all-or-nothing
behaviour across lines wrap the loop in `transaction.atomic()`.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from catalog.cache import invalidate_product
from catalog.models import Product, ProductVariant
from common.exceptions import BadRequest
from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest

from .models import StockMovement

logger = logging.getLogger("aquashop.inventory")


class StockError(BadRequest):
    """Raised when a line cannot be validated or committed."""


@dataclass(frozen=True)
class StockLine:
    product_id: int
    quantity: int
    variant_id: Optional[int] = None


def validate_line(*, product: Product, variant_id: Optional[int], quantity: int) -> Optional[ProductVariant]:
    """Check one cart line against current stock without mutating anything.

    Returns the selected variant for variant products, else None.
    """

    if product.status != Product.STATUS_ACTIVE:
        raise StockError(f'Product "{product.name}" is not available')

    variant = None
    available = int(product.stock)
    if product.has_variants:
        if variant_id is not None:
            variant = next((v for v in product.variants.all() if v.id == int(variant_id)), None)
        if variant is None:
            raise StockError(f'Variant of product "{product.name}" not found')
        if not variant.is_active:
            raise StockError(f'Variant of product "{product.name}" is inactive')
        available = int(variant.stock)

    if quantity <= 0:
        raise StockError("Quantity must be positive")
    if available < quantity:
        raise StockError(f'Product "{product.name}" only has {available} left in stock')
    return variant


def _invalidate(product_id: int) -> None:
    # Drop now for readers in this request, and again once the writes are visible.
    invalidate_product(product_id)
    transaction.on_commit(lambda: invalidate_product(product_id))


def commit_line(*, line: StockLine, reference: str = "") -> None:
    """Decrement stock and bump sold_count for one line.

    Raises StockError when the conditional update matches no row, which
    means a concurrent order took the remaining stock.
    """

    qty = int(line.quantity)
    if line.variant_id:
        updated = ProductVariant.objects.filter(
            id=line.variant_id, product_id=line.product_id, stock__gte=qty
        ).update(stock=F("stock") - qty)
        if updated:
            Product.objects.filter(id=line.product_id).update(sold_count=F("sold_count") + qty)
    else:
        updated = Product.objects.filter(id=line.product_id, stock__gte=qty).update(
            stock=F("stock") - qty, sold_count=F("sold_count") + qty
        )
    if not updated:
        logger.warning(
            "inventory.commit_conflict",
            extra={
                "event": "inventory.commit_conflict",
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "quantity": qty,
                "reference": reference,
            },
        )
        raise StockError("Insufficient stock for one of the items, please review your cart")

    StockMovement.objects.create(
        product_id=line.product_id,
        variant_id=line.variant_id,
        movement_type=StockMovement.TYPE_OUTBOUND,
        quantity=-qty,
        reason="order",
        reference=reference,
    )
    _invalidate(line.product_id)


def rollback_line(*, line: StockLine, reference: str = "") -> bool:
    """Return stock for one line; sold_count is floored at zero.

    A product (or variant) deleted since the order was placed is skipped
    and logged. Returns whether stock was restored.
    """

    qty = int(line.quantity)
    if not Product.objects.filter(id=line.product_id).exists():
        logger.warning(
            "inventory.rollback_skipped",
            extra={
                "event": "inventory.rollback_skipped",
                "product_id": line.product_id,
                "reason": "product_missing",
                "reference": reference,
            },
        )
        return False

    restored = True
    if line.variant_id:
        updated = ProductVariant.objects.filter(id=line.variant_id, product_id=line.product_id).update(
            stock=F("stock") + qty
        )
        if not updated:
            restored = False
            logger.warning(
                "inventory.rollback_skipped",
                extra={
                    "event": "inventory.rollback_skipped",
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "reason": "variant_missing",
                    "reference": reference,
                },
            )
        Product.objects.filter(id=line.product_id).update(sold_count=Greatest(F("sold_count") - qty, 0))
    else:
        Product.objects.filter(id=line.product_id).update(
            stock=F("stock") + qty, sold_count=Greatest(F("sold_count") - qty, 0)
        )

    if restored:
        StockMovement.objects.create(
            product_id=line.product_id,
            variant_id=line.variant_id,
            movement_type=StockMovement.TYPE_INBOUND,
            quantity=qty,
            reason="order_cancelled",
            reference=reference,
        )
    _invalidate(line.product_id)
    return restored


def commit_stock(lines: Iterable[StockLine], *, reference: str = "") -> None:
    for line in lines:
        commit_line(line=line, reference=reference)


def rollback_stock(lines: Iterable[StockLine], *, reference: str = "") -> int:
    """Roll back every line independently. Returns how many were restored."""

    return sum(1 for line in lines if rollback_line(line=line, reference=reference))
