import json

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Cart,
    CartItem,
    CheckoutSession,
    Coupon,
    CouponUsage,
    Order,
    OrderItem,
    OrderTrackingEvent,
)


def _pretty_json(value):
    if not value:
        return "-"
    return format_html("<pre>{}</pre>", json.dumps(value, indent=2))


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = (
        'product', 'product_title', 'unit_price', 'final_price',
        'quantity', 'subtotal', 'gst_amount', 'item_status', 'supplier_name',
    )
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderTrackingEventInline(admin.TabularInline):
    model = OrderTrackingEvent
    extra = 0
    readonly_fields = ('created_at', 'status', 'title', 'description', 'location', 'is_milestone', 'created_by')
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        'order_number',
        'user',
        'status',
        'payment_status',
        'payment_method',
        'total_amount',
        'created_at',
    )
    list_filter = ('status', 'payment_status', 'payment_method', 'created_at')
    search_fields = ('order_number', 'tracking_number', 'user__email')
    inlines = [OrderItemInline, OrderTrackingEventInline]

    # Status changes go through OrderService so tracking stays consistent
    readonly_fields = (
        'id', 'order_number', 'tracking_number', 'user', 'checkout_session',
        'status', 'payment_status', 'payment_method', 'payment_transaction_id',
        'items_subtotal', 'discount_amount', 'coupon_code', 'coupon_discount',
        'tax_amount', 'shipping_charges', 'platform_fee', 'total_amount',
        'formatted_shipping_address', 'formatted_billing_address',
        'delivery_eta', 'shipped_at', 'delivered_at',
        'cancellation_reason', 'cancelled_at', 'cancelled_by',
        'created_at', 'updated_at',
    )

    fieldsets = (
        ('Order Details', {
            'fields': ('order_number', 'tracking_number', 'id', 'status', 'user', 'checkout_session')
        }),
        ('Financials', {
            'fields': (
                'items_subtotal', 'discount_amount', 'coupon_code', 'coupon_discount',
                'tax_amount', 'shipping_charges',
                'platform_fee', 'total_amount', 'payment_status', 'payment_method',
                'payment_transaction_id',
            )
        }),
        ('Delivery Info', {
            'fields': ('formatted_shipping_address', 'formatted_billing_address', 'delivery_eta', 'shipped_at', 'delivered_at')
        }),
        ('Notes', {
            'fields': ('order_notes', 'admin_notes', 'cancellation_reason', 'cancelled_at', 'cancelled_by')
        }),
        ('System Data', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Shipping Address Snapshot")
    def formatted_shipping_address(self, obj):
        return _pretty_json(obj.shipping_address)

    @admin.display(description="Billing Address Snapshot")
    def formatted_billing_address(self, obj):
        return _pretty_json(obj.billing_address)


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    readonly_fields = ('product', 'quantity', 'unit_price', 'added_at')
    can_delete = False


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'coupon', 'updated_at')
    search_fields = ('user__email',)
    readonly_fields = ('user', 'coupon', 'created_at', 'updated_at')
    inlines = [CartItemInline]

    def has_add_permission(self, request):
        return False


@admin.register(CheckoutSession)
class CheckoutSessionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'is_used', 'expires_at', 'created_at')
    list_filter = ('is_used',)
    search_fields = ('id', 'user__email')
    readonly_fields = ('id', 'user', 'formatted_snapshot', 'snapshot_hash', 'expires_at', 'is_used', 'used_at', 'created_at')
    exclude = ('cart_snapshot',)

    def has_add_permission(self, request):
        return False

    @admin.display(description="Cart Snapshot")
    def formatted_snapshot(self, obj):
        return _pretty_json(obj.cart_snapshot)


class CouponUsageInline(admin.TabularInline):
    model = CouponUsage
    extra = 0
    readonly_fields = ('user', 'order', 'discount_applied', 'order_value', 'created_at')
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        'code', 'discount_type', 'discount_value', 'min_order_value',
        'valid_until', 'current_usage_count', 'total_usage_limit', 'is_active',
    )
    list_filter = ('discount_type', 'is_active')
    search_fields = ('code', 'description')
    readonly_fields = ('current_usage_count', 'created_at', 'updated_at')
    inlines = [CouponUsageInline]
