"""Read-side helpers for orders: listings, cached detail and statistics."""

import logging
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Prefetch, Q, QuerySet, Sum

from .models import Order, OrderStatusHistory

logger = logging.getLogger("aquashop.orders")


def order_cache_key(order_id: int) -> str:
    return f"orders:detail:{order_id}"


def invalidate_order_cache(order_id: int) -> None:
    cache.delete(order_cache_key(order_id))


def _with_related(qs: QuerySet[Order]) -> QuerySet[Order]:
    return qs.select_related("user", "payment").prefetch_related(
        "items",
        "promotions",
        Prefetch("history", queryset=OrderStatusHistory.objects.order_by("timestamp", "id")),
    )


def list_user_orders(*, user, status: Optional[str] = None) -> QuerySet[Order]:
    qs = Order.objects.filter(user_id=user.id)
    if status:
        qs = qs.filter(status=status)
    return _with_related(qs).order_by("-created_at", "-id")


def list_all_orders(*, status: Optional[str] = None, search: Optional[str] = None) -> QuerySet[Order]:
    qs = Order.objects.all()
    if status:
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(number__icontains=search) | Q(shipping_address__phone__icontains=search))
    return _with_related(qs).order_by("-created_at", "-id")


def get_order(order_id: int) -> Optional[Order]:
    return _with_related(Order.objects.filter(id=order_id)).first()


def get_order_for_viewer(*, order_id: int, user, serialize) -> Optional[dict]:
    """Serialized order for its owner or an admin; None when not visible.

    The serialized payload is cached for ORDER_CACHE_TTL_SECONDS; every
    order mutation drops the entry.
    """

    key = order_cache_key(order_id)
    data = cache.get(key)
    if data is None:
        order = get_order(order_id)
        if order is None:
            return None
        data = serialize(order)
        cache.set(key, data, getattr(settings, "ORDER_CACHE_TTL_SECONDS", 180))
    if data.get("user_id") != user.id and not getattr(user, "is_admin_role", False):
        return None
    return data


def order_statistics(*, start=None, end=None) -> dict:
    """Order count and revenue, overall and per status, for a date range."""

    qs = Order.objects.all()
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)

    totals = qs.aggregate(total_orders=Count("id"), total_revenue=Sum("total_price"))
    paid_revenue = qs.filter(is_paid=True).exclude(status=Order.STATUS_REFUNDED).aggregate(
        value=Sum("total_price")
    )["value"]
    by_status = {
        row["status"]: {"count": row["count"], "revenue": row["revenue"]}
        for row in qs.values("status").annotate(count=Count("id"), revenue=Sum("total_price")).order_by("status")
    }
    return {
        "total_orders": totals["total_orders"] or 0,
        "total_revenue": totals["total_revenue"] or 0,
        "paid_revenue": paid_revenue or 0,
        "by_status": by_status,
    }
