"""DispatchDueNotifications command + handler: the notification retry sweep.

Invoked periodically by the maintenance loop. Failed notifications that
still have attempts left go back to PENDING once their backoff has passed
and are sent again; PENDING notifications the dispatcher never got to (the
process stopped between commit and dispatch) are sent once they are older
than ``stale_after_seconds``.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean.fields import DateTime
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from sqlalchemy import DateTime as SQLDateTime
from sqlalchemy import Integer as SQLInteger
from sqlalchemy import String as SQLString
from sqlalchemy import and_, column, or_, select, table

from notifications.notification.dispatch import deliver
from notifications.notification.notification import Notification, NotificationStatus
from shared.domain import checkout, domain_settings
from shared.utils.dates import db_timestamp
from shared.utils.db import current_session

logger = structlog.get_logger(__name__)

notifications = table(
    "notifications",
    column("id", SQLString),
    column("status", SQLString),
    column("retry_count", SQLInteger),
    column("max_retries", SQLInteger),
    column("next_attempt_at", SQLDateTime),
    column("created_at", SQLDateTime),
)


@checkout.command(part_of="Notification")
class DispatchDueNotifications:
    """Request to send every notification that is due."""

    as_of = DateTime()  # Optional: defaults to now


def _due_notification_ids(as_of: datetime, stale_after_seconds: int, limit: int) -> list[str]:
    now = db_timestamp(as_of)
    stale_before = now - timedelta(seconds=stale_after_seconds)
    query = (
        select(notifications.c.id)
        .where(
            or_(
                and_(
                    notifications.c.status == NotificationStatus.FAILED.value,
                    notifications.c.retry_count < notifications.c.max_retries,
                    notifications.c.next_attempt_at <= now,
                ),
                and_(
                    notifications.c.status == NotificationStatus.PENDING.value,
                    notifications.c.created_at <= stale_before,
                ),
            )
        )
        .order_by(notifications.c.created_at)
        .limit(limit)
    )
    return list(current_session().execute(query).scalars())


@checkout.command_handler(part_of=Notification)
class DispatchDueNotificationsHandler:
    @handle(DispatchDueNotifications)
    def dispatch_due(self, command: DispatchDueNotifications):
        settings = domain_settings().notifications
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(Notification)

        requeued = 0
        sent = 0
        for notification_id in _due_notification_ids(as_of, settings.stale_after_seconds, settings.batch_size):
            notification = repo.get(notification_id)
            if notification.status == NotificationStatus.FAILED.value:
                notification.retry()
                requeued += 1

            deliver(notification, settings)
            if notification.status == NotificationStatus.SENT.value:
                sent += 1
            repo.add(notification)

        if requeued or sent:
            logger.info("Due notifications processed", requeued=requeued, sent=sent, as_of=str(as_of))
        return sent
