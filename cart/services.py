"""Cart services: line mutations and clearing after checkout."""

import logging

from catalog.models import Product, ProductVariant
from common.exceptions import BadRequest, NotFound
from django.db import transaction

from .models import CartItem
from .selectors import get_active_cart_for_user


class CartError(BadRequest):
    """Raised for cart mutation failures."""


logger = logging.getLogger("aquashop.cart")


@transaction.atomic
def add_item(*, user, product_id: int, quantity: int, variant_id: int | None = None) -> CartItem:
    """Add a product (or one of its variants) to the cart, merging quantities."""

    if quantity <= 0:
        raise CartError("Quantity must be positive")
    try:
        product = Product.objects.get(id=product_id)
    except Product.DoesNotExist:
        raise NotFound("Product not found")
    variant = None
    if product.has_variants:
        if not variant_id:
            raise CartError("Please choose a variant")
        variant = ProductVariant.objects.filter(id=variant_id, product=product).first()
        if variant is None:
            raise NotFound("Variant not found")

    cart = get_active_cart_for_user(user=user)
    item, created = CartItem.objects.select_for_update().get_or_create(
        cart=cart, product=product, variant=variant, defaults={"quantity": quantity}
    )
    if not created:
        item.quantity = int(item.quantity) + int(quantity)
        item.save(update_fields=["quantity", "updated_at"])
    logger.info(
        "cart.item_added",
        extra={
            "event": "cart.item_added",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "product_id": product.id,
            "variant_id": getattr(variant, "id", None),
            "quantity": item.quantity,
        },
    )
    return item


@transaction.atomic
def remove_item(*, user, item_id: int) -> None:
    deleted, _ = CartItem.objects.filter(id=item_id, cart__user=user).delete()
    if not deleted:
        raise NotFound("Not found.")
    logger.info(
        "cart.item_removed",
        extra={"event": "cart.item_removed", "user_id": getattr(user, "id", None), "item_id": item_id},
    )


def clear_cart(*, user) -> int:
    """Delete every line of the user's cart. Returns the number of lines removed."""

    deleted, _ = CartItem.objects.filter(cart__user=user).delete()
    logger.info(
        "cart.cleared",
        extra={"event": "cart.cleared", "user_id": getattr(user, "id", None), "lines": deleted},
    )
    return deleted
