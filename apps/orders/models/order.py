from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from apps.utils.models import TimestampedModel

__all__ = ["Order", "OrderStatus", "PaymentStatus", "PaymentMethod"]


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    COD = "cod", "Cash on Delivery"
    ONLINE = "online", "Online"
    UPI = "upi", "UPI"


def _money_field(**kwargs):
    return models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        **kwargs,
    )


class Order(TimestampedModel):
    ACTIVE_STATUSES = (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
    )
    CANCELLABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.CONFIRMED)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders")

    # ORD-<year>-<6 digit sequence>
    order_number = models.CharField(max_length=20, unique=True)
    tracking_number = models.CharField(max_length=40, db_index=True)

    checkout_session = models.OneToOneField(
        "orders.CheckoutSession",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order",
    )

    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.COD)
    payment_transaction_id = models.CharField(max_length=100, blank=True)

    # Pricing breakdown, copied from the checkout session summary
    items_subtotal = _money_field()
    discount_amount = _money_field()
    coupon_discount = _money_field()
    coupon_code = models.CharField(max_length=50, blank=True)
    tax_amount = _money_field()
    shipping_charges = _money_field()
    platform_fee = _money_field()
    total_amount = _money_field()

    # Snapshot of Address (JSON) to prevent historical drift
    shipping_address = models.JSONField()
    billing_address = models.JSONField()

    delivery_eta = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    order_notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    cancellation_reason = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders_cancelled",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "status"]),
            models.Index(fields=["created_at"]),
        ]

    def __str__(self):
        return f"{self.order_number} [{self.status}]"

    @property
    def can_cancel(self):
        return self.status in self.CANCELLABLE_STATUSES

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES
