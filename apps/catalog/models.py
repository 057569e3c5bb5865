# apps/catalog/models.py
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Category(models.Model):
    """
    Flat listing category (Industrial Machinery, Packaging, ...)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    slug = models.SlugField(unique=True, blank=True, db_index=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ["sort_order", "name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.name)
            slug_candidate = base_slug
            counter = 1

            while Category.objects.filter(slug=slug_candidate).exclude(pk=self.pk).exists():
                slug_candidate = f"{base_slug}-{counter}"
                counter += 1

            self.slug = slug_candidate
        super().save(*args, **kwargs)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    SOLD_OUT = "sold_out", "Sold Out"


class Product(models.Model):
    """
    A supplier listing.

    NOTE:
    - `quantity` is the live available stock, decremented when an order
      is placed and returned when one is cancelled.
    - `expires_at` is set for time-limited listings (surplus lots, clearance).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    supplier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="products",
    )
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="products",
    )

    title = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, blank=True, db_index=True)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True, null=True)
    unit = models.CharField(max_length=50, default="pcs")

    # Pricing
    original_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="List price before the listing discount",
    )
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Selling price after discount, GST inclusive",
    )
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    gst_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("18.00"),
        help_text="GST percentage (e.g. 18.00 for 18%)",
    )

    # Stock
    quantity = models.PositiveIntegerField(default=0)
    min_order_quantity = models.PositiveIntegerField(default=1)

    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
        db_index=True,
    )
    expires_at = models.DateTimeField(null=True, blank=True)

    supplier_city = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "category"]),
            models.Index(fields=["supplier", "status"]),
        ]

    def __str__(self):
        return f"{self.sku or self.id} - {self.title}"

    @property
    def is_active(self):
        return self.status == ProductStatus.ACTIVE

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < timezone.now()
