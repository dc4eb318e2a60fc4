"""URL routes for the orders app (v1)."""

from django.urls import path

from .views import OrderCancelView, OrderDetailView, OrderListCreateView, OrderPreviewView, VNPayReturnView

app_name = "orders"

urlpatterns = [
    path("", OrderListCreateView.as_view(), name="order-list"),
    path("preview/", OrderPreviewView.as_view(), name="order-preview"),
    path("payment/vnpay/return/", VNPayReturnView.as_view(), name="vnpay-return"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
]
