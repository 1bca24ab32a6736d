"""Internal dispatch handler: sends notifications via channel adapters.

Reacts to NotificationQueued events and dispatches via the channel adapter.
Updates the notification status to SENT or FAILED based on the result; a
send that fails, or an adapter that raises, marks the notification FAILED
with a backoff so the retry sweep picks it up later.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.channel import get_channel
from notifications.notification.notification import (
    Notification,
    NotificationChannel,
    NotificationQueued,
    NotificationStatus,
)
from shared.config import NotificationSettings
from shared.domain import checkout, domain_settings
from shared.exceptions import NotificationDeliveryError

logger = structlog.get_logger(__name__)


def _dispatch_via_channel(adapter, notification: Notification) -> dict:
    """Route dispatch to the correct adapter method based on channel."""
    if notification.channel == NotificationChannel.EMAIL.value:
        return adapter.send(
            to=notification.recipient,
            subject=notification.subject or "",
            body=notification.body,
        )
    raise NotificationDeliveryError(f"Unknown channel: {notification.channel}")


def deliver(notification: Notification, settings: NotificationSettings) -> None:
    """Hand a PENDING notification to its channel and record the outcome on it."""
    try:
        adapter = get_channel(notification.channel)
        result = _dispatch_via_channel(adapter, notification)
    except Exception as exc:
        result = {"status": "failed", "error": str(exc)}

    if result.get("status") == "sent":
        notification.mark_sent(message_id=result.get("message_id"))
        logger.info(
            "Notification sent",
            notification_id=str(notification.id),
            notification_type=notification.notification_type,
            order_id=notification.order_id,
        )
    else:
        notification.mark_failed(result.get("error"), backoff_seconds=settings.backoff_seconds)
        log = logger.warning if notification.can_retry else logger.error
        log(
            "Notification dispatch failed",
            notification_id=str(notification.id),
            order_id=notification.order_id,
            error=notification.failure_reason,
            retry_count=notification.retry_count,
            max_retries=notification.max_retries,
        )


def dispatch_notification(notification_id: str, settings: NotificationSettings) -> str | None:
    """Send one pending notification. Returns its resulting status."""
    repo = current_domain.repository_for(Notification)
    try:
        notification = repo.get(notification_id)
    except ObjectNotFoundError:
        logger.error("Failed to load notification for dispatch", notification_id=str(notification_id))
        return None

    # Only dispatch PENDING notifications
    if notification.status != NotificationStatus.PENDING.value:
        logger.info(
            "Notification not in PENDING status, skipping dispatch",
            notification_id=str(notification_id),
            status=notification.status,
        )
        return None

    deliver(notification, settings)
    repo.add(notification)
    return notification.status


@checkout.event_handler(part_of=Notification)
class NotificationDispatcher:
    """Dispatches notifications via channel adapters when they are queued."""

    @handle(NotificationQueued)
    def on_notification_queued(self, event: NotificationQueued) -> None:
        dispatch_notification(str(event.notification_id), domain_settings().notifications)
