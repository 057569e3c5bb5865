from celery import shared_task
from django.utils import timezone
from datetime import timedelta
import logging

from .models import CheckoutSession

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_checkout_sessions(grace_hours: int = 24):
    """
    Runs hourly.
    Deletes unused checkout sessions that expired more than `grace_hours` ago.
    Used sessions stay, they are referenced by their order.
    """
    cutoff = timezone.now() - timedelta(hours=grace_hours)

    deleted, _ = CheckoutSession.objects.filter(
        is_used=False,
        expires_at__lt=cutoff,
    ).delete()

    logger.info(f"Purged {deleted} expired checkout sessions")
    return f"Purged {deleted} checkout sessions"
