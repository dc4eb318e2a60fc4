from django.contrib import admin

from .models import Promotion, PromotionUsage


class PromotionUsageInline(admin.TabularInline):
    model = PromotionUsage
    extra = 0
    readonly_fields = ("user", "used_count", "last_used_at")
    can_delete = False


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "discount_type",
        "discount_value",
        "is_active",
        "start_date",
        "end_date",
        "usage_count",
        "usage_limit_total",
    )
    list_filter = ("discount_type", "is_active")
    search_fields = ("code", "name")
    readonly_fields = ("usage_count",)
    inlines = [PromotionUsageInline]
