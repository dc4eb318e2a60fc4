from decimal import Decimal

from rest_framework import serializers

from .models import Promotion


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Promotion
        fields = [
            "id",
            "code",
            "name",
            "description",
            "discount_type",
            "discount_value",
            "min_order_value",
            "max_discount",
            "end_date",
        ]


class EligibilityQuerySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal("0"))
