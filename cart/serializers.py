"""Cart serializers for read and write operations."""

from rest_framework import serializers

from .models import CartItem
from .services import add_item


class CartItemReadSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", default=None, read_only=True)

    class Meta:
        model = CartItem
        fields = ["id", "product", "product_name", "variant", "quantity"]


class CartReadSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    items = CartItemReadSerializer(many=True)

    @classmethod
    def from_cart(cls, *, cart):
        return cls({"id": cart.id, "items": list(cart.items.select_related("product").all())})


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding an item to the cart."""

    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)

    def create(self, validated_data):  # type: ignore[override]
        user = self.context["request"].user
        return add_item(user=user, **validated_data)
