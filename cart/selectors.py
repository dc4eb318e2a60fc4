"""Selectors for read-only cart queries."""

from .models import Cart, CartItem


def get_active_cart_for_user(*, user) -> Cart:
    """Return the user's cart, creating it if missing."""

    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def cart_lines(*, user) -> list[CartItem]:
    """Return the user's cart lines in insertion order.

    A line whose product has since been deleted comes back with
    `product=None`; the order pipeline rejects such carts.
    """

    return list(
        CartItem.objects.filter(cart__user=user).select_related("product", "variant").order_by("id")
    )
