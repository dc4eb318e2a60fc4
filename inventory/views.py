"""Inventory audit views (admin only)."""

from django.utils.dateparse import parse_datetime
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics
from users.permissions import IsAdminRole

from .models import StockMovement
from .serializers import StockMovementSerializer


class MovementListView(generics.ListAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = StockMovementSerializer
    throttle_scope = "orders"

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description="Audit trail of order-driven stock changes.",
        parameters=[
            OpenApiParameter(name="product_id", required=False, type=int),
            OpenApiParameter(name="reference", description="Order number", required=False, type=str),
            OpenApiParameter(name="created_after", description="ISO datetime", required=False, type=str),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        qs = StockMovement.objects.order_by("-created_at", "id")
        product_id = self.request.query_params.get("product_id")
        reference = self.request.query_params.get("reference")
        created_after = self.request.query_params.get("created_after")

        if product_id:
            qs = qs.filter(product_id=product_id)
        if reference:
            qs = qs.filter(reference=reference)
        if created_after:
            dt = parse_datetime(created_after)
            if dt:
                qs = qs.filter(created_at__gte=dt)
        return qs
