"""In-app notifications addressed to a single user."""

from common.choices import NotificationPriority, NotificationType
from django.conf import settings
from django.db import models


class Notification(models.Model):
    TYPE_ORDER_UPDATE = NotificationType.ORDER_UPDATE
    TYPE_NEW_ORDER = NotificationType.NEW_ORDER
    TYPE_PAYMENT_SUCCESS = NotificationType.PAYMENT_SUCCESS
    TYPE_PAYMENT_FAILED = NotificationType.PAYMENT_FAILED
    TYPE_CHOICES = NotificationType.choices

    PRIORITY_MEDIUM = NotificationPriority.MEDIUM
    PRIORITY_HIGH = NotificationPriority.HIGH
    PRIORITY_CHOICES = NotificationPriority.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="notifications", on_delete=models.CASCADE)
    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    title = models.CharField(max_length=200)
    message = models.CharField(max_length=1000)
    order = models.ForeignKey(
        "orders.Order", null=True, blank=True, related_name="notifications", on_delete=models.SET_NULL
    )
    action_url = models.CharField(max_length=255, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"], name="notification_inbox_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Notification#{self.id} user={self.user_id} {self.title}"
