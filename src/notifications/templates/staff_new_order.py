"""Staff alert template: sent to every configured staff address on a new order."""

from notifications.notification.notification import (
    NotificationChannel,
    NotificationType,
)


class StaffNewOrderTemplate:
    notification_type = NotificationType.STAFF_NEW_ORDER.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        customer = context.get("customer_email") or context.get("account_id", "unknown customer")
        return {
            "subject": f"New order #{order_id}",
            "body": (
                f"A new order #{order_id} was placed by {customer}.\n\n"
                f"Items: {context.get('item_count', 0)}\n"
                f"Total: {context.get('currency', 'USD')} {context.get('total', '0.00')}\n"
                f"Payment: {context.get('payment_method', 'none')} ({context.get('payment_status', 'pending')})\n"
                f"Shipping: {context.get('shipping_method', 'standard')}"
            ),
        }
