from rest_framework import serializers

from .models import (
    CartItem,
    Order,
    OrderItem,
    OrderItemStatus,
    OrderStatus,
    OrderTrackingEvent,
    PaymentMethod,
)


# ---- Input (camelCase, mirrors the public API) ----

class PaymentDetailsSerializer(serializers.Serializer):
    transactionId = serializers.CharField(max_length=100, required=False, allow_blank=True)
    upiId = serializers.CharField(max_length=100, required=False, allow_blank=True)
    cardLast4 = serializers.RegexField(r"^\d{4}$", required=False)


class CreateOrderSerializer(serializers.Serializer):
    checkoutSessionId = serializers.UUIDField()
    shippingAddressId = serializers.UUIDField()
    billingAddressId = serializers.UUIDField(required=False, allow_null=True)
    paymentMethod = serializers.ChoiceField(choices=PaymentMethod.choices)
    paymentDetails = PaymentDetailsSerializer(required=False, allow_null=True)
    orderNotes = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)

    def to_internal_value(self, data):
        # An empty string billing id means "same as shipping"
        if hasattr(data, "get") and data.get("billingAddressId") == "":
            data = data.copy()
            data["billingAddressId"] = None
        return super().to_internal_value(data)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=10, max_length=500, trim_whitespace=True)


class CartItemInputSerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=100000)


class CartQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0, max_value=100000)


class CouponApplySerializer(serializers.Serializer):
    couponCode = serializers.CharField(max_length=50, trim_whitespace=True)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(max_length=500, required=False, allow_blank=True)


class OrderItemStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderItemStatus.choices)


# ---- Output ----

class CartItemSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ["id", "product", "product_title", "quantity", "unit_price", "total_price", "added_at"]
        read_only_fields = fields


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "product_title",
            "product_sku",
            "product_image",
            "product_category",
            "unit_price",
            "discount_percent",
            "discount_amount",
            "final_price",
            "quantity",
            "subtotal",
            "gst_percent",
            "gst_amount",
            "item_status",
            "supplier",
            "supplier_name",
            "supplier_city",
        ]
        read_only_fields = fields


class OrderTrackingEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTrackingEvent
        fields = ["id", "status", "title", "description", "location", "is_milestone", "created_at"]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "tracking_number",
            "status",
            "status_display",
            "payment_status",
            "payment_method",
            "total_amount",
            "item_count",
            "delivery_eta",
            "created_at",
        ]
        read_only_fields = fields


class OrderDetailSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    tracking_events = OrderTrackingEventSerializer(many=True, read_only=True)
    can_cancel = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "tracking_number",
            "status",
            "status_display",
            "payment_status",
            "payment_method",
            "payment_transaction_id",
            "items_subtotal",
            "discount_amount",
            "coupon_discount",
            "coupon_code",
            "tax_amount",
            "shipping_charges",
            "platform_fee",
            "total_amount",
            "shipping_address",
            "billing_address",
            "delivery_eta",
            "shipped_at",
            "delivered_at",
            "order_notes",
            "cancellation_reason",
            "cancelled_at",
            "can_cancel",
            "items",
            "tracking_events",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AdminOrderSerializer(OrderDetailSerializer):
    buyer_email = serializers.EmailField(source="user.email", read_only=True)

    class Meta(OrderDetailSerializer.Meta):
        fields = OrderDetailSerializer.Meta.fields + ["buyer_email", "admin_notes"]
        read_only_fields = fields


def order_created_payload(order, item_count):
    return {
        "orderId": str(order.id),
        "orderNumber": order.order_number,
        "trackingNumber": order.tracking_number,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "totalAmount": str(order.total_amount),
        "itemCount": item_count,
        "deliveryEta": order.delivery_eta.isoformat() if order.delivery_eta else None,
        "createdAt": order.created_at.isoformat(),
    }
