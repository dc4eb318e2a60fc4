"""Admin registration for catalog models."""

from django.contrib import admin

from .cache import invalidate_product
from .models import Category, Product, ProductVariant


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active")
    search_fields = ("name", "slug")
    list_filter = ("is_active",)
    prepopulated_fields = {"slug": ("name",)}


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ("sku", "price", "stock", "is_active", "option_values")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "price", "sale_price", "stock", "sold_count", "status")
    search_fields = ("name", "sku", "slug")
    list_filter = ("status", "has_variants", "category")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("sold_count",)
    inlines = [ProductVariantInline]

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        invalidate_product(obj.id)
