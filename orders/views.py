"""Orders API endpoints.

Customer endpoints live under `/api/v1/orders/`, staff endpoints under
`/api/v1/admin/orders/`. Service errors are returned as `{"detail": ...}`
with the status code carried by the exception.
"""

import logging
from urllib.parse import urlencode, urlparse

from common.exceptions import ServiceError
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.shortcuts import redirect
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from users.permissions import IsAdminRole

from .models import Order
from .selectors import get_order_for_viewer, list_all_orders, list_user_orders, order_statistics
from .serializers import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    PaymentResultSerializer,
    PaymentSerializer,
    StatisticsQuerySerializer,
)
from .services import (
    cancel_order,
    compute_request_hash,
    create_order,
    handle_vnpay_return,
    preview_order,
    record_payment_result,
    update_order_status,
    with_idempotency,
)
from .staging import get_store

logger = logging.getLogger("aquashop.orders")

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)
ERROR_RESPONSE = inline_serializer(name="OrderError", fields={"detail": rf_serializers.CharField()})


def client_ip(request):
    """First X-Forwarded-For hop when it is a valid address, else REMOTE_ADDR."""

    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
        try:
            validate_ipv46_address(candidate)
        except ValidationError:
            logger.warning(
                "request.invalid_forwarded_for",
                extra={"event": "request.invalid_forwarded_for", "value": candidate[:64]},
            )
        else:
            return candidate
    return request.META.get("REMOTE_ADDR")


def _serialize(order: Order) -> dict:
    return dict(OrderSerializer(order).data)


class DefaultPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "page_size"
    max_page_size = 100


class OrderListCreateView(generics.ListAPIView):
    """List the caller's orders (GET) or check out the cart (POST).

    POST is idempotent when `Idempotency-Key` is provided. Returns 409 on key
    reuse with a different payload.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination

    def get_throttles(self):
        self.throttle_scope = "orders_write" if self.request.method == "POST" else "orders"
        return super().get_throttles()

    def get_queryset(self):
        return list_user_orders(user=self.request.user, status=self.request.query_params.get("status"))

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["Orders"],
        summary="Create order",
        description=(
            "Creates an order from the cart. COD orders are persisted and returned with 201. "
            "VNPay orders return a `payment_url`; the order is created when the gateway confirms payment."
        ),
        request=OrderCreateSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        responses={201: OrderSerializer, 400: ERROR_RESPONSE, 409: ERROR_RESPONSE},
        examples=[
            OpenApiExample(
                "COD checkout",
                value={
                    "shipping_address": {
                        "full_name": "Nguyen Van A",
                        "phone": "0901234567",
                        "street": "12 Le Loi",
                        "ward": "Ben Nghe",
                        "district": "1",
                        "city": "Ho Chi Minh",
                    },
                    "payment_method": "cod",
                    "promotion_code": "AQUA10",
                },
                request_only=True,
            ),
            OpenApiExample(
                "VNPay redirect",
                value={"payment_url": "https://sandbox.vnpayment.vn/...", "transaction_ref": "2501011200001A2B3C4D"},
                response_only=True,
            ),
        ],
    )
    def post(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        def _handler():
            try:
                result = create_order(
                    user=request.user,
                    shipping_address=dict(data["shipping_address"]),
                    payment_method=data["payment_method"],
                    promotion_code=data.get("promotion_code"),
                    promotion_codes=data.get("promotion_codes"),
                    notes=data.get("notes", ""),
                    client_ip=client_ip(request),
                )
            except ServiceError as exc:
                return {"detail": str(exc)}, exc.status_code
            if result.order is None:
                return {
                    "payment_url": result.payment_url,
                    "transaction_ref": result.transaction_ref,
                    "total_price": str(result.totals.total_price),
                }, status.HTTP_201_CREATED
            return _serialize(result.order), status.HTTP_201_CREATED

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)


class OrderPreviewView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Orders"],
        summary="Preview order totals",
        parameters=[OpenApiParameter(name="promotion_code", required=False, type=str)],
        examples=[
            OpenApiExample(
                "Preview",
                value={
                    "items": [],
                    "subtotal": "100000.00",
                    "shipping_fee": "8000.00",
                    "shipping_tier": {"percentage": "8", "next_tier": "5", "next_tier_threshold": "300000"},
                    "discount": "0.00",
                    "total_price": "108000.00",
                    "promotion": None,
                },
                response_only=True,
            )
        ],
    )
    def get(self, request):
        try:
            data = preview_order(user=request.user, promotion_code=request.query_params.get("promotion_code"))
        except ServiceError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(data)


class OrderDetailView(APIView):
    """Retrieve a single order for its owner (or an admin)."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"

    @extend_schema(tags=["Orders"], summary="Get order detail", responses={200: OrderSerializer, 404: ERROR_RESPONSE})
    def get(self, request, order_id: int):
        data = get_order_for_viewer(order_id=order_id, user=request.user, serialize=_serialize)
        if data is None:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(data)


class OrderCancelView(APIView):
    """Cancel an order for the authenticated owner.

    Idempotent when `Idempotency-Key` is provided.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Cancels a pending, confirmed or failed order and returns its stock.",
        request=OrderCancelSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        responses={200: OrderSerializer, 400: ERROR_RESPONSE, 403: ERROR_RESPONSE, 404: ERROR_RESPONSE},
        examples=[
            OpenApiExample("Cancelled", value={"id": 1, "status": "cancelled"}, response_only=True),
            OpenApiExample(
                "Not cancellable", value={"detail": "Cannot cancel an order that is shipping"}, response_only=True
            ),
        ],
    )
    def post(self, request, order_id: int):
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def _handler():
            try:
                order = cancel_order(order_id=order_id, user=request.user, reason=serializer.validated_data["reason"])
            except ServiceError as exc:
                return {"detail": str(exc)}, exc.status_code
            return _serialize(order), status.HTTP_200_OK

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=_handler,
            )
            return Response(body, status=code)

        body, code = _handler()
        return Response(body, status=code)


def _safe_frontend_base() -> str:
    base = (getattr(settings, "FRONTEND_URL", "") or "").strip()
    parsed = urlparse(base)
    if not parsed.scheme or not parsed.netloc:
        logger.warning("orders.invalid_frontend_url", extra={"event": "orders.invalid_frontend_url"})
        return "http://localhost:5173"
    return base.rstrip("/")


class VNPayReturnView(APIView):
    """Browser return from VNPay; always answers with a redirect to the storefront."""

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "orders_write"

    @extend_schema(tags=["Orders"], summary="VNPay return", responses={302: None})
    def get(self, request):
        base = _safe_frontend_base()
        try:
            outcome = handle_vnpay_return(request.query_params)
        except Exception:
            logger.exception("payment.vnpay_return_error", extra={"event": "payment.vnpay_return_error"})
            return redirect(f"{base}/checkout/result?{urlencode({'payment': 'failed', 'reason': 'error'})}")

        if outcome.order is not None and outcome.status in ("success", "not_found"):
            return redirect(f"{base}/orders/{outcome.order.id}?payment=success")
        query = urlencode({"payment": "failed", "reason": outcome.reason or outcome.status})
        return redirect(f"{base}/checkout/result?{query}")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AdminOrderFilterSet(filters.FilterSet):
    status = filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    payment_method = filters.ChoiceFilter(choices=Order.METHOD_CHOICES)
    start = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    end = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["status", "payment_method", "start", "end"]


class AdminOrderListView(generics.ListAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    filter_backends = [filters.DjangoFilterBackend]
    filterset_class = AdminOrderFilterSet
    throttle_scope = "orders"

    def get_queryset(self):
        return list_all_orders(search=self.request.query_params.get("search"))

    @extend_schema(
        tags=["Admin Orders"],
        summary="List all orders",
        parameters=[
            OpenApiParameter(name="search", description="Order number or phone contains", required=False, type=str),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class AdminOrderStatusView(APIView):
    permission_classes = [IsAdminRole]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Admin Orders"],
        summary="Change order status",
        request=OrderStatusUpdateSerializer,
        responses={200: OrderSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def patch(self, request, order_id: int):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = update_order_status(order_id=order_id, actor=request.user, **serializer.validated_data)
        except ServiceError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(_serialize(order))


class AdminOrderPaymentView(APIView):
    permission_classes = [IsAdminRole]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Admin Orders"],
        summary="Record payment result",
        request=PaymentResultSerializer,
        responses={200: PaymentSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE},
    )
    def post(self, request, order_id: int):
        serializer = PaymentResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            payment = record_payment_result(order_id=order_id, actor=request.user, **serializer.validated_data)
        except ServiceError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(PaymentSerializer(payment).data)


class AdminOrderStatisticsView(APIView):
    permission_classes = [IsAdminRole]
    throttle_scope = "orders"

    @extend_schema(
        tags=["Admin Orders"],
        summary="Order statistics",
        parameters=[
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
        ],
    )
    def get(self, request):
        serializer = StatisticsQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(order_statistics(**serializer.validated_data))


class StagedOrderStatsView(APIView):
    permission_classes = [IsAdminRole]
    throttle_scope = "orders"

    @extend_schema(tags=["Admin Orders"], summary="Staged gateway orders")
    def get(self, request):
        return Response(get_store().stats())
