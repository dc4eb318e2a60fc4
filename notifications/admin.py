from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "type", "priority", "title", "is_read", "created_at")
    list_filter = ("type", "priority", "is_read")
    search_fields = ("title", "message", "user__email")
    raw_id_fields = ("user", "order")
