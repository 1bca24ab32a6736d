"""Order confirmation template: sent to the buyer when an order is placed."""

from notifications.notification.notification import (
    NotificationChannel,
    NotificationType,
)


class OrderConfirmationTemplate:
    notification_type = NotificationType.ORDER_CONFIRMATION.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        total = context.get("total", "0.00")
        currency = context.get("currency", "USD")
        lines = "\n".join(
            f"  {item['quantity']} x {item['name']} @ {item['unit_price']}" for item in context.get("items", [])
        )
        name = context.get("customer_name") or "there"
        return {
            "subject": f"Order #{order_id} Confirmed",
            "body": (
                f"Hi {name},\n\n"
                f"Your order #{order_id} has been received.\n\n"
                f"{lines}\n\n"
                f"Shipping: {context.get('shipping_method', 'standard')}\n"
                f"Order Total: {currency} {total}\n"
                f"Payment: {context.get('payment_status', 'pending')}\n\n"
                "We'll notify you once your order ships."
            ),
        }
