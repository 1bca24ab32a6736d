"""Helpers that render templates into notifications.

Call them from inside the unit of work that made the change, so the
notification is committed if and only if the change is.
"""

import structlog
from protean.utils.globals import current_domain

from identity.account.account import Account
from notifications.notification.notification import (
    Notification,
    NotificationType,
    RecipientType,
)
from notifications.templates import get_template
from ordering.order.order import Order
from shared.config import NotificationSettings

logger = structlog.get_logger(__name__)


def create_notification(
    recipient: str,
    notification_type: str,
    context: dict,
    recipient_type: str = RecipientType.CUSTOMER.value,
    order_id: str | None = None,
    max_retries: int = 5,
) -> Notification:
    """Render ``notification_type`` for ``context`` and add one notification per default channel."""
    template_cls = get_template(notification_type)
    rendered = template_cls.render(context)

    notifications = []
    for channel in template_cls.default_channels:
        notification = Notification.create(
            recipient=recipient,
            notification_type=notification_type,
            channel=channel,
            subject=rendered.get("subject"),
            body=rendered["body"],
            recipient_type=recipient_type,
            template_name=template_cls.__name__,
            context_data=context,
            order_id=order_id,
            max_retries=max_retries,
        )
        current_domain.repository_for(Notification).add(notification)
        notifications.append(notification)
    return notifications[0]


def _order_context(order: Order, account: Account | None) -> dict:
    return {
        "order_id": str(order.id),
        "account_id": str(order.account_id),
        "customer_name": account.name if account else None,
        "customer_email": account.email if account else None,
        "items": [
            {"name": item.name, "quantity": item.quantity, "unit_price": f"{item.unit_price:.2f}"}
            for item in order.items
        ],
        "item_count": order.item_count,
        "total": f"{order.total:.2f}",
        "currency": order.currency,
        "shipping_method": order.shipping_method,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
    }


def enqueue_order_notifications(
    order: Order,
    account: Account | None,
    settings: NotificationSettings,
) -> list[str]:
    """Queue the buyer's confirmation and one staff alert per configured recipient."""
    context = _order_context(order, account)
    notification_ids = []

    if account is not None and account.email:
        notification = create_notification(
            recipient=account.email,
            notification_type=NotificationType.ORDER_CONFIRMATION.value,
            context=context,
            order_id=str(order.id),
            max_retries=settings.max_retries,
        )
        notification_ids.append(str(notification.id))
    else:
        logger.info("No customer email on file, skipping confirmation", order_id=order.id)

    for recipient in settings.staff_recipients:
        notification = create_notification(
            recipient=recipient,
            notification_type=NotificationType.STAFF_NEW_ORDER.value,
            context=context,
            recipient_type=RecipientType.INTERNAL.value,
            order_id=str(order.id),
            max_retries=settings.max_retries,
        )
        notification_ids.append(str(notification.id))

    logger.info("Order notifications queued", order_id=str(order.id), count=len(notification_ids))
    return notification_ids


def enqueue_shipping_notification(
    order: Order,
    account: Account | None,
    settings: NotificationSettings,
) -> str | None:
    if account is None or not account.email:
        logger.info("No customer email on file, skipping shipping update", order_id=order.id)
        return None

    shipment = order.shipment or {}
    notification = create_notification(
        recipient=account.email,
        notification_type=NotificationType.SHIPPING_UPDATE.value,
        context={
            "order_id": str(order.id),
            "carrier": shipment.get("carrierCode"),
            "tracking_number": shipment.get("trackingNumber"),
            "tracking_url": shipment.get("trackingUrl"),
            "estimated_delivery": shipment.get("estimatedDelivery"),
        },
        order_id=str(order.id),
        max_retries=settings.max_retries,
    )
    logger.info("Shipping notification queued", order_id=str(order.id), notification_id=str(notification.id))
    return str(notification.id)
