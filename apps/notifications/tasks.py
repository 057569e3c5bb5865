import logging
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from .models import Notification, NotificationChannel, NotificationStatus

logger = logging.getLogger(__name__)


def _send_email_notification(notification: Notification) -> bool:
    email = getattr(notification.user, "email", None)
    if not email:
        logger.warning(f"Cannot send email: User {notification.user_id} has no email address.")
        return False

    sent = send_mail(
        subject=notification.title,
        message=notification.message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[email],
        fail_silently=False,
    )
    return sent > 0


@shared_task(bind=True, max_retries=3, default_retry_delay=10)
def send_notification_task(self, notification_id: str):
    try:
        with transaction.atomic():
            # Lock the row to prevent double delivery
            notification = Notification.objects.select_for_update().get(id=notification_id)

            if notification.status == NotificationStatus.SENT:
                return

            if notification.channel == NotificationChannel.EMAIL:
                delivered = _send_email_notification(notification)
            else:
                # In-app rows are delivered by being stored
                delivered = True

            notification.status = NotificationStatus.SENT if delivered else NotificationStatus.FAILED
            notification.sent_at = timezone.now()
            notification.save(update_fields=["status", "sent_at"])

    except Notification.DoesNotExist:
        logger.error(f"Notification {notification_id} not found.")
    except Exception as exc:
        logger.exception(f"Failed to send notification {notification_id}")
        raise self.retry(exc=exc)


@shared_task
def purge_read_notifications(days: int = 90):
    cutoff = timezone.now() - timezone.timedelta(days=days)
    deleted, _ = Notification.objects.filter(is_read=True, read_at__lt=cutoff).delete()
    logger.info(f"Purged {deleted} read notifications older than {days} days")
    return deleted
