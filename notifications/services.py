"""Notification services for the order pipeline.

The `create_*` functions write rows synchronously. `notify_order_created`
and `notify_order_status` are the fan-out entry points used by the order
services: they defer all work until the order transaction commits, and
failures never reach the caller.
"""

import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from promotions.services import format_vnd

from . import dispatch
from .emails import send_order_email
from .models import Notification

logger = logging.getLogger("aquashop.notifications")

ORDER_TITLES = {
    "confirmed": "Your order has been confirmed",
    "processing": "Your order is being processed",
    "shipping": "Your order is on its way",
    "completed": "Your order has been delivered",
    "cancelled": "Your order has been cancelled",
    "refunded": "Your order has been refunded",
}
DEFAULT_ORDER_TITLE = "Order update"
HIGH_PRIORITY_STATUSES = {"cancelled", "refunded"}


def create_order_notification(user_id: int, order_id: int, status: str, message: str) -> Notification:
    """Notify a buyer that their order changed state."""

    notification = Notification.objects.create(
        user_id=user_id,
        order_id=order_id,
        type=Notification.TYPE_ORDER_UPDATE,
        priority=Notification.PRIORITY_HIGH if status in HIGH_PRIORITY_STATUSES else Notification.PRIORITY_MEDIUM,
        title=ORDER_TITLES.get(status, DEFAULT_ORDER_TITLE),
        message=message,
        action_url=f"/orders/{order_id}",
    )
    logger.info(
        "notification.order_update",
        extra={"event": "notification.order_update", "user_id": user_id, "order_id": order_id, "status": status},
    )
    return notification


def create_payment_notification(user_id: int, order_id: int, succeeded: bool, message: str) -> Notification:
    return Notification.objects.create(
        user_id=user_id,
        order_id=order_id,
        type=Notification.TYPE_PAYMENT_SUCCESS if succeeded else Notification.TYPE_PAYMENT_FAILED,
        priority=Notification.PRIORITY_MEDIUM if succeeded else Notification.PRIORITY_HIGH,
        title="Payment successful" if succeeded else "Payment failed",
        message=message,
        action_url=f"/orders/{order_id}",
    )


def create_new_order_notification_for_admins(
    order_id: int, order_number: str, customer_name: str, total_price: Decimal
) -> list[Notification]:
    """Notify every active admin that a new order needs confirmation."""

    User = get_user_model()
    admins = User.objects.filter(role=User.ROLE_ADMIN, is_active=True).only("id")
    message = f"{customer_name} placed order #{order_number} worth {format_vnd(total_price)}"
    notifications = Notification.objects.bulk_create(
        [
            Notification(
                user_id=admin.id,
                order_id=order_id,
                type=Notification.TYPE_NEW_ORDER,
                priority=Notification.PRIORITY_HIGH,
                title=f"New order #{order_number} needs confirmation",
                message=message,
                action_url=f"/admin/orders/{order_id}",
            )
            for admin in admins
        ]
    )
    logger.info(
        "notification.new_order",
        extra={"event": "notification.new_order", "order_id": order_id, "recipients": len(notifications)},
    )
    return notifications


def _load_order(order_id: int):
    from orders.models import Order

    return Order.objects.select_related("user").get(id=order_id)


def _order_created(order_id: int) -> None:
    order = _load_order(order_id)
    message = f"Order #{order.number} was created"
    create_order_notification(order.user_id, order.id, order.status, message)
    create_new_order_notification_for_admins(
        order.id, order.number, order.user.full_name, order.total_price
    )
    send_order_email(order, subject=f"Order #{order.number} received", message=message)


def _order_status_changed(order_id: int, status: str, message: str) -> None:
    order = _load_order(order_id)
    create_order_notification(order.user_id, order.id, status, message)
    send_order_email(order, subject=ORDER_TITLES.get(status, DEFAULT_ORDER_TITLE), message=message)


def _payment_result(order_id: int, succeeded: bool, message: str) -> None:
    order = _load_order(order_id)
    create_payment_notification(order.user_id, order.id, succeeded, message)


def notify_order_created(order) -> None:
    dispatch.after_commit(_order_created, order.id, event="notification.order_created", order_id=order.id)


def notify_order_status(order, status: str, message: str) -> None:
    dispatch.after_commit(
        _order_status_changed, order.id, status, message, event="notification.order_status", order_id=order.id
    )


def notify_payment_result(order, succeeded: bool, message: str) -> None:
    dispatch.after_commit(
        _payment_result, order.id, succeeded, message, event="notification.payment_result", order_id=order.id
    )
