# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active", "sort_order")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    ordering = ("sort_order", "name")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "sku",
        "supplier",
        "category",
        "price",
        "quantity",
        "status",
        "expires_at",
    )
    search_fields = ("title", "sku", "supplier__email", "supplier__company_name")
    list_filter = ("status", "category")
    list_editable = ("price", "quantity", "status")
    readonly_fields = ("created_at", "updated_at")
