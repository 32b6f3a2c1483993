import logging
from functools import partial

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.notifications.events import event_from_payload
from apps.notifications.models import Notification, NotificationChannel, NotificationStatus

logger = logging.getLogger(__name__)


def notify(recipient, event, *, channel=None, scheduled_at=None):
    """Queue ``event`` for ``recipient`` in the caller's transaction.

    The row is written as part of the business operation. Delivery happens
    after commit, so a rolled back operation never notifies anyone and a
    failed delivery never rolls back the operation.
    """
    now = timezone.now()
    notification = Notification.objects.create(
        recipient=recipient,
        kind=event.kind,
        channel=channel or settings.NOTIFICATION_DEFAULT_CHANNEL,
        payload=event.as_payload(),
        scheduled_at=scheduled_at or now,
    )
    if notification.scheduled_at <= now:
        transaction.on_commit(partial(dispatch_notification, notification.id))
    return notification


def deliver(notification):
    event = event_from_payload(notification.kind, notification.payload)
    if notification.channel == NotificationChannel.EMAIL:
        address = notification.recipient.email
        if not address:
            raise ValueError(f"User {notification.recipient_id} has no email address")
        send_mail(event.subject(), event.message(), settings.DEFAULT_FROM_EMAIL, [address], fail_silently=False)
        return
    # push and in-app rows are read from the notifications endpoint
    logger.debug("Notification %s stored for %s channel", notification.id, notification.channel)


def dispatch_notification(notification_id):
    notification = (
        Notification.objects.select_related("recipient")
        .filter(pk=notification_id, status=NotificationStatus.SCHEDULED)
        .first()
    )
    if notification is None:
        return None

    try:
        deliver(notification)
    except Exception as exc:
        logger.exception("Delivery of notification %s (%s) failed", notification.id, notification.kind)
        Notification.objects.filter(pk=notification.pk).update(
            status=NotificationStatus.FAILED,
            last_error=str(exc)[:500],
            attempts=F("attempts") + 1,
            updated_at=timezone.now(),
        )
    else:
        Notification.objects.filter(pk=notification.pk).update(
            status=NotificationStatus.SENT,
            sent_at=timezone.now(),
            last_error="",
            attempts=F("attempts") + 1,
            updated_at=timezone.now(),
        )
    notification.refresh_from_db()
    return notification


def dispatch_due(now=None, limit=200):
    now = now or timezone.now()
    pending = Notification.objects.filter(status=NotificationStatus.SCHEDULED, scheduled_at__lte=now).order_by("scheduled_at")
    results = {NotificationStatus.SENT: 0, NotificationStatus.FAILED: 0}
    for notification_id in pending.values_list("id", flat=True)[:limit]:
        notification = dispatch_notification(notification_id)
        if notification is not None:
            results[notification.status] = results.get(notification.status, 0) + 1
    return results


def mark_read(recipient, notification_ids=None):
    queryset = Notification.objects.filter(recipient=recipient, read_at__isnull=True)
    if notification_ids is not None:
        queryset = queryset.filter(pk__in=notification_ids)
    return queryset.update(read_at=timezone.now(), updated_at=timezone.now())
