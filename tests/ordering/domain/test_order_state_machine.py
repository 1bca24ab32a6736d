"""Tests for the order status state machine and its shipment sub-state."""

import pytest
from ordering.order.order import Order, OrderStatus, ShipmentStatus
from payments.payment.verification import PaymentStatus
from shared.exceptions import ValidationError

PRICING = {
    "subtotal": 50.0,
    "discount_amount": 0.0,
    "applied_coupon": None,
    "tax_rate": 0.0,
    "tax_amount": 0.0,
    "shipping_method": "standard",
    "shipping_cost": 5.0,
    "total": 55.0,
    "currency": "USD",
}


def _order(paid=True):
    payment = {
        "method": "stripe" if paid else "none",
        "payment_id": "pi_1" if paid else None,
        "status": PaymentStatus.PAID.value if paid else PaymentStatus.PENDING.value,
    }
    return Order.create(
        order_id="order-1",
        account_id="acct-1",
        items=[{"productId": "p1", "name": "Widget", "quantity": 2, "unitPrice": 25.0}],
        pricing=PRICING,
        payment=payment,
    )


class TestInitialStatus:
    def test_paid_orders_start_processing(self):
        assert _order(paid=True).status == OrderStatus.PROCESSING.value

    def test_unpaid_orders_start_pending(self):
        order = _order(paid=False)
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_items_are_snapshotted(self):
        order = _order()
        assert order.item_count == 2
        assert order.items[0].unit_price == 25.0


class TestTransitions:
    def test_happy_path(self):
        order = _order(paid=False)
        assert order.transition_to(OrderStatus.PROCESSING)
        assert order.transition_to(OrderStatus.SHIPPED)
        assert order.transition_to(OrderStatus.DELIVERED)
        assert order.status == OrderStatus.DELIVERED.value

    def test_pending_can_be_canceled(self):
        order = _order(paid=False)
        order.transition_to(OrderStatus.CANCELED)
        assert order.status == OrderStatus.CANCELED.value

    def test_repeating_the_current_status_is_a_no_op(self):
        order = _order()
        assert order.transition_to(OrderStatus.PROCESSING) is False

    def test_cannot_skip_to_delivered(self):
        order = _order()
        with pytest.raises(ValidationError) as exc:
            order.transition_to(OrderStatus.DELIVERED)
        assert "Cannot transition from processing to delivered" in exc.value.messages["status"][0]

    def test_shipped_orders_cannot_be_canceled(self):
        order = _order()
        order.transition_to(OrderStatus.SHIPPED)
        with pytest.raises(ValidationError):
            order.transition_to(OrderStatus.CANCELED)

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELED])
    def test_terminal_states(self, terminal):
        order = _order()
        if terminal == OrderStatus.DELIVERED:
            order.transition_to(OrderStatus.SHIPPED)
        order.transition_to(terminal)
        with pytest.raises(ValidationError):
            order.transition_to(OrderStatus.PROCESSING)


class TestShipmentSubState:
    def test_shipping_opens_label_pending(self):
        order = _order()
        order.transition_to(OrderStatus.SHIPPED)
        assert order.shipment_status == ShipmentStatus.LABEL_PENDING.value
        assert order.needs_label

    def test_processing_orders_do_not_need_labels(self):
        assert not _order().needs_label

    def test_to_dict_uses_camel_case(self):
        data = _order().to_dict()
        assert data["id"] == "order-1"
        assert data["accountId"] == "acct-1"
        assert data["total"] == 55.0
        assert data["products"] == [{"productId": "p1", "name": "Widget", "quantity": 2, "price": 25.0}]
        assert data["shipmentStatus"] is None
