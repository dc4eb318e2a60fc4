"""Coupon listing and eligibility endpoints."""

from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import CouponSerializer, EligibilityQuerySerializer
from .services import check_coupon_eligibility, list_active_coupons


class ActiveCouponsView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "promotions"

    @extend_schema(
        tags=["Promotions"],
        summary="List active coupons",
        description="Live coupons grouped into `free_shipping` and `discount`.",
        responses={
            200: inline_serializer(
                name="ActiveCoupons",
                fields={
                    "free_shipping": CouponSerializer(many=True),
                    "discount": CouponSerializer(many=True),
                },
            )
        },
    )
    def get(self, request):
        grouped = list_active_coupons()
        return Response({bucket: CouponSerializer(items, many=True).data for bucket, items in grouped.items()})


class CouponEligibilityView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "promotions"

    @extend_schema(
        tags=["Promotions"],
        summary="Check coupon eligibility",
        parameters=[
            OpenApiParameter(name="code", required=True, type=str),
            OpenApiParameter(name="subtotal", description="Cart subtotal", required=False, type=str),
        ],
        responses={
            200: inline_serializer(
                name="CouponEligibility",
                fields={
                    "eligible": rf_serializers.BooleanField(),
                    "reason": rf_serializers.CharField(required=False),
                    "coupon": CouponSerializer(required=False),
                },
            )
        },
        examples=[
            OpenApiExample("Eligible", value={"eligible": True, "coupon": {"code": "AQUA10"}}, response_only=True),
            OpenApiExample(
                "Not eligible",
                value={"eligible": False, "reason": "Promotion code has reached its usage limit"},
                response_only=True,
            ),
        ],
    )
    def get(self, request):
        query = EligibilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = check_coupon_eligibility(
            code=query.validated_data["code"],
            user=request.user,
            subtotal=query.validated_data["subtotal"],
        )
        promotion = result.pop("promotion", None)
        if promotion is not None:
            result["coupon"] = CouponSerializer(promotion).data
        return Response(result)
