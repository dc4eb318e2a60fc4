"""Staff order routes, mounted under /api/v1/admin/orders/."""

from django.urls import path

from .views import (
    AdminOrderListView,
    AdminOrderPaymentView,
    AdminOrderStatisticsView,
    AdminOrderStatusView,
    StagedOrderStatsView,
)

app_name = "orders_admin"

urlpatterns = [
    path("", AdminOrderListView.as_view(), name="order-list"),
    path("statistics/", AdminOrderStatisticsView.as_view(), name="order-statistics"),
    path("staged/", StagedOrderStatsView.as_view(), name="staged-orders"),
    path("<int:order_id>/status/", AdminOrderStatusView.as_view(), name="order-status"),
    path("<int:order_id>/payment/", AdminOrderPaymentView.as_view(), name="order-payment"),
]
