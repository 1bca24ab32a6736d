"""Notification aggregate: one message to one recipient over one channel.

Notifications are written in the same unit of work as the change they
announce. Each one raises ``NotificationQueued``; the dispatcher reacts to
it once the unit of work has committed, so a slow or failing mail server
never holds up checkout.

State Machine:
    PENDING → SENT
    PENDING → FAILED → (retry after backoff) → PENDING
A notification stays FAILED once ``max_retries`` attempts have failed.
"""

import json
from datetime import datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from shared.domain import checkout
from shared.utils.dates import db_timestamp


class NotificationType(Enum):
    ORDER_CONFIRMATION = "OrderConfirmation"
    STAFF_NEW_ORDER = "StaffNewOrder"
    SHIPPING_UPDATE = "ShippingUpdate"


class NotificationChannel(Enum):
    EMAIL = "Email"


class NotificationStatus(Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


class RecipientType(Enum):
    CUSTOMER = "Customer"
    INTERNAL = "Internal"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.FAILED: {NotificationStatus.PENDING},  # Via retry
    NotificationStatus.SENT: set(),  # Terminal
}


@checkout.event(part_of="Notification")
class NotificationQueued:
    """A notification was written and is ready for dispatch."""

    __version__ = "v1"

    notification_id = Identifier(required=True)
    notification_type = String(required=True)
    channel = String(required=True)
    order_id = Identifier()
    queued_at = DateTime(required=True)


@checkout.aggregate(schema_name="notifications")
class Notification:
    # Recipient
    recipient = String(max_length=255, required=True)
    recipient_type = String(max_length=20, choices=RecipientType, default=RecipientType.CUSTOMER.value)

    notification_type = String(max_length=50, choices=NotificationType, required=True)
    channel = String(max_length=20, choices=NotificationChannel, default=NotificationChannel.EMAIL.value)

    # Content, rendered when the notification is written
    subject = String(max_length=500)
    body = Text(required=True)
    template_name = String(max_length=200)
    context_data = Text()

    order_id = Identifier()

    status = String(max_length=20, choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    next_attempt_at = DateTime()
    sent_at = DateTime()
    message_id = String(max_length=200)
    failure_reason = String(max_length=500)

    retry_count = Integer(default=0)
    max_retries = Integer(default=5)

    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        recipient,
        notification_type,
        body,
        subject=None,
        channel=NotificationChannel.EMAIL.value,
        recipient_type=RecipientType.CUSTOMER.value,
        template_name=None,
        context_data=None,
        order_id=None,
        max_retries=5,
    ):
        """Create a new notification in PENDING status, due immediately."""
        now = db_timestamp()
        notification = cls(
            recipient=recipient,
            recipient_type=recipient_type,
            notification_type=notification_type,
            channel=channel,
            subject=subject,
            body=body,
            template_name=template_name,
            context_data=json.dumps(context_data) if context_data is not None else None,
            order_id=order_id,
            status=NotificationStatus.PENDING.value,
            next_attempt_at=now,
            retry_count=0,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )
        notification.raise_(
            NotificationQueued(
                notification_id=str(notification.id),
                notification_type=notification_type,
                channel=channel,
                order_id=order_id,
                queued_at=now,
            )
        )
        return notification

    @property
    def context(self) -> dict:
        return json.loads(self.context_data) if self.context_data else {}

    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def can_retry(self) -> bool:
        return self.status == NotificationStatus.FAILED.value and self.retry_count < self.max_retries

    def mark_sent(self, message_id=None, sent_at: datetime | None = None):
        """Mark notification as successfully handed to the channel."""
        self._assert_can_transition(NotificationStatus.SENT)

        now = db_timestamp(sent_at)
        self.status = NotificationStatus.SENT.value
        self.message_id = message_id
        self.sent_at = now
        self.failure_reason = None
        self.updated_at = now

    def mark_failed(self, reason, backoff_seconds=30, now: datetime | None = None):
        """Mark notification as failed and schedule the next attempt.

        The delay doubles with every failed attempt.
        """
        self._assert_can_transition(NotificationStatus.FAILED)

        now = db_timestamp(now)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = (reason or "Unknown dispatch error")[:500]
        self.retry_count = self.retry_count + 1
        self.next_attempt_at = now + timedelta(seconds=backoff_seconds * 2 ** (self.retry_count - 1))
        self.updated_at = now

    def retry(self):
        """Put a failed notification back in the queue."""
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if self.retry_count >= self.max_retries:
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        self.status = NotificationStatus.PENDING.value
        self.updated_at = db_timestamp()
