"""Template registry: maps NotificationType to template classes.

Each template knows its default channels and how to render content
from context data.
"""

from notifications.notification.notification import NotificationType
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.shipping_update import ShippingUpdateTemplate
from notifications.templates.staff_new_order import StaffNewOrderTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationType.ORDER_CONFIRMATION.value: OrderConfirmationTemplate,
    NotificationType.STAFF_NEW_ORDER.value: StaffNewOrderTemplate,
    NotificationType.SHIPPING_UPDATE.value: ShippingUpdateTemplate,
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls
