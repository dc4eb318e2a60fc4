"""DRF serializers for Orders.

Read serializers expose the stored snapshot; totals come from the
denormalized columns written at checkout and are never recomputed here.
"""

from common.choices import OrderStatus, PaymentMethod
from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory, Payment


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "variant",
            "product_name",
            "sku",
            "image",
            "variant_snapshot",
            "quantity",
            "unit_price",
            "discount_percent",
            "line_subtotal",
        ]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["status", "note", "updated_by", "timestamp"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "method",
            "status",
            "amount",
            "currency",
            "transaction_id",
            "failure_reason",
            "processed_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order with items, payment and history."""

    user_id = serializers.IntegerField(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    history = OrderStatusHistorySerializer(many=True, read_only=True)
    payment = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "user_id",
            "status",
            "payment_method",
            "shipping_address",
            "items",
            "subtotal",
            "shipping_fee",
            "tax",
            "discount",
            "total_price",
            "promotion_codes",
            "notes",
            "is_paid",
            "paid_at",
            "cancel_reason",
            "cancelled_at",
            "tracking_number",
            "shipping_provider",
            "delivered_at",
            "payment",
            "history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_payment(self, obj: Order):
        payment = getattr(obj, "payment", None)
        return PaymentSerializer(payment).data if payment is not None else None


class ShippingAddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=120, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    street = serializers.CharField(max_length=255, required=False, allow_blank=True)
    ward = serializers.CharField(max_length=120, required=False, allow_blank=True)
    district = serializers.CharField(max_length=120, required=False, allow_blank=True)
    city = serializers.CharField(max_length=120, required=False, allow_blank=True)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True)


class OrderCreateSerializer(serializers.Serializer):
    """Checkout payload. Address completeness is checked by the service."""

    shipping_address = ShippingAddressSerializer()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    promotion_code = serializers.CharField(max_length=40, required=False, allow_blank=True, allow_null=True)
    promotion_codes = serializers.ListField(
        child=serializers.CharField(max_length=40), required=False, allow_empty=True, max_length=10
    )
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    tracking_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    shipping_provider = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")


class PaymentResultSerializer(serializers.Serializer):
    succeeded = serializers.BooleanField()
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class StatisticsQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
