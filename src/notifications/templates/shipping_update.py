"""Shipping update template: sent when a label has been issued for the order."""

from notifications.notification.notification import (
    NotificationChannel,
    NotificationType,
)


class ShippingUpdateTemplate:
    notification_type = NotificationType.SHIPPING_UPDATE.value
    default_channels = [NotificationChannel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        carrier = context.get("carrier") or "the carrier"
        tracking_number = context.get("tracking_number") or "N/A"
        estimated_delivery = context.get("estimated_delivery") or "soon"
        body = (
            f"Great news! Your order #{order_id} has shipped.\n\n"
            f"Carrier: {carrier}\n"
            f"Tracking Number: {tracking_number}\n"
            f"Estimated Delivery: {estimated_delivery}\n"
        )
        if context.get("tracking_url"):
            body += f"\nTrack your package: {context['tracking_url']}\n"
        return {"subject": "Your Order Has Shipped!", "body": body}
