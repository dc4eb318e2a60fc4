"""Selectors for the catalog domain.

Read-only query helpers shared by the catalog API and the order pipeline.
"""

from typing import Optional

from django.db.models import Prefetch, QuerySet

from .models import Product, ProductVariant


def list_products(*, category_slug: Optional[str] = None, search: Optional[str] = None) -> QuerySet[Product]:
    """Return active products, optionally filtered by category and name."""

    qs = Product.objects.filter(status=Product.STATUS_ACTIVE).select_related("category")
    if category_slug:
        qs = qs.filter(category__slug=category_slug)
    if search:
        qs = qs.filter(name__icontains=search)
    return qs.order_by("name")


def get_product(product_id: int) -> Optional[Product]:
    """Return a product with its variants prefetched, or None."""

    qs = Product.objects.prefetch_related(
        Prefetch("variants", queryset=ProductVariant.objects.order_by("id")),
    )
    try:
        return qs.get(id=product_id)
    except Product.DoesNotExist:
        return None


def products_by_id(product_ids) -> dict[int, Product]:
    """Map product id to product for a batch of ids (variants prefetched)."""

    qs = Product.objects.filter(id__in=set(product_ids)).prefetch_related("variants")
    return {p.id: p for p in qs}
