"""Email utilities for order notifications.

Uses Django's email backend, with links composed from FRONTEND_URL.
"""

from django.conf import settings
from django.core.mail import send_mail


def send_order_email(order, *, subject: str, message: str) -> None:
    """Send a best-effort email about an order to its owner.

    Silently no-ops if the user has no email address.
    """
    to_email = getattr(order.user, "email", None)
    if not to_email:
        return

    frontend = getattr(settings, "FRONTEND_URL", "").rstrip("/")
    order_url = f"{frontend}/orders/{order.id}" if frontend else ""
    body = f"{message}\n\nOrder: {order.number}\nStatus: {order.get_status_display()}\n"
    if order_url:
        body += f"\nYou can view your order here: {order_url}\n"

    send_mail(
        subject,
        body,
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        [to_email],
        fail_silently=True,
    )
