"""Tests for notification templates and the template registry."""

import pytest
from notifications.notification.notification import NotificationChannel, NotificationType
from notifications.templates import TEMPLATE_REGISTRY, get_template
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.shipping_update import ShippingUpdateTemplate
from notifications.templates.staff_new_order import StaffNewOrderTemplate

ORDER_CONTEXT = {
    "order_id": "ord-1",
    "customer_name": "Ada",
    "customer_email": "ada@example.com",
    "items": [{"name": "Widget", "quantity": 2, "unit_price": "25.00"}],
    "item_count": 2,
    "total": "53.60",
    "currency": "USD",
    "shipping_method": "standard",
    "payment_method": "stripe",
    "payment_status": "paid",
}


class TestRegistry:
    def test_every_notification_type_has_a_template(self):
        assert set(TEMPLATE_REGISTRY) == {t.value for t in NotificationType}

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            get_template("Newsletter")

    def test_templates_default_to_email(self):
        for template_cls in TEMPLATE_REGISTRY.values():
            assert template_cls.default_channels == [NotificationChannel.EMAIL.value]


class TestRendering:
    def test_order_confirmation(self):
        rendered = OrderConfirmationTemplate.render(ORDER_CONTEXT)
        assert rendered["subject"] == "Order #ord-1 Confirmed"
        assert "Hi Ada" in rendered["body"]
        assert "2 x Widget @ 25.00" in rendered["body"]
        assert "USD 53.60" in rendered["body"]

    def test_staff_alert_names_the_customer(self):
        rendered = StaffNewOrderTemplate.render(ORDER_CONTEXT)
        assert rendered["subject"] == "New order #ord-1"
        assert "ada@example.com" in rendered["body"]
        assert "stripe (paid)" in rendered["body"]

    def test_shipping_update_with_tracking_link(self):
        rendered = ShippingUpdateTemplate.render(
            {"order_id": "ord-1", "carrier": "stamps_com", "tracking_number": "9400", "tracking_url": "https://t/9400"}
        )
        assert "Tracking Number: 9400" in rendered["body"]
        assert "Track your package: https://t/9400" in rendered["body"]

    def test_shipping_update_without_tracking_link(self):
        rendered = ShippingUpdateTemplate.render({"order_id": "ord-1"})
        assert "Track your package" not in rendered["body"]
        assert "Tracking Number: N/A" in rendered["body"]
