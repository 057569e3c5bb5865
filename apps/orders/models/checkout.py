import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

__all__ = ["CheckoutSession"]


class CheckoutSession(models.Model):
    """
    Single-use snapshot of a buyer's cart taken when checkout starts.

    `cart_snapshot` holds {"items": [...], "summary": {...}, "itemCount": n};
    `snapshot_hash` is the SHA-256 content hash of its (product, quantity) pairs.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="checkout_sessions",
        on_delete=models.CASCADE,
    )

    cart_snapshot = models.JSONField(default=dict)
    snapshot_hash = models.CharField(max_length=64)

    expires_at = models.DateTimeField(db_index=True)
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_used"]),
        ]

    def __str__(self):
        return f"Checkout {self.id} for {self.user_id}"

    @property
    def is_expired(self):
        return timezone.now() > self.expires_at

    @property
    def items(self):
        return self.cart_snapshot.get("items", [])

    @property
    def summary(self):
        return self.cart_snapshot.get("summary", {})
