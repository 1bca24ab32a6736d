"""Order aggregate and its status state machine.

State Machine:
    pending → processing → shipped → delivered
    pending | processing → canceled

Orders start as processing when payment was verified, pending otherwise.
Only an explicit status update moves an order forward.

Shipment sub-state (meaningful once the order is shipped):
    label_pending → label_requested → labeled
A failed carrier call puts the order back to label_pending so a later
update to shipped can request the label again. Past label_pending the
sub-state is only changed by the compare-and-set statements in fulfillment.
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text
from sqlalchemy import DateTime as SQLDateTime
from sqlalchemy import String as SQLString
from sqlalchemy import Text as SQLText
from sqlalchemy import column, table

from payments.payment.verification import PaymentStatus
from shared.domain import checkout
from shared.money import round_money
from shared.utils.dates import db_timestamp, isoformat


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class ShipmentStatus(Enum):
    LABEL_PENDING = "label_pending"
    LABEL_REQUESTED = "label_requested"
    LABELED = "labeled"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELED: set(),  # Terminal
}


def _money(value) -> float | None:
    return float(round_money(value)) if value is not None else None


def _loads(value):
    return json.loads(value) if value else None


def _dumps(value):
    return json.dumps(value) if value is not None else None


@checkout.entity(part_of="Order", schema_name="order_items")
class OrderItem:
    product_id = Identifier(required=True)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)

    def to_dict(self) -> dict:
        return {
            "productId": str(self.product_id),
            "name": self.name,
            "quantity": self.quantity,
            "price": _money(self.unit_price),
        }


@checkout.aggregate(schema_name="orders")
class Order:
    account_id = Identifier(required=True)
    status = String(max_length=20, choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)

    # Pricing snapshot
    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    applied_coupon_data = Text()
    tax_rate = Float(default=0.0)
    tax_amount = Float(default=0.0)
    tax_country = String(max_length=100)
    tax_state = String(max_length=100)
    shipping_method = String(max_length=200)
    shipping_cost = Float(default=0.0)
    shipping_rate_info_data = Text()
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    shipping_address_data = Text()

    # Payment
    payment_method = String(max_length=20)
    payment_id = String(max_length=255)
    payment_status = String(max_length=20, default=PaymentStatus.PENDING.value)
    card_brand = String(max_length=50)
    card_last4 = String(max_length=4)

    # Stock hold consumed by this order
    hold_id = Identifier()

    # Fulfillment
    shipment_status = String(max_length=20)
    shipment_data = Text()
    label_requested_at = DateTime()
    shipped_at = DateTime()

    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        order_id: str,
        account_id: str,
        items: list[dict],
        pricing: dict,
        payment: dict,
        shipping_address: dict | None = None,
        hold_id: str | None = None,
    ) -> "Order":
        """Build an order from a priced checkout and the payment verification outcome.

        Args:
            items: dicts with productId, name, quantity, unitPrice.
            pricing: subtotal, discount_amount, applied_coupon, tax_rate,
                     tax_amount, tax_country, tax_state, shipping_method,
                     shipping_cost, shipping_rate_info, total, currency.
            payment: method, payment_id, status, card_brand, card_last4.
        """
        now = db_timestamp()
        is_paid = payment["status"] == PaymentStatus.PAID.value
        order = cls(
            id=order_id,
            account_id=account_id,
            status=OrderStatus.PROCESSING.value if is_paid else OrderStatus.PENDING.value,
            subtotal=pricing["subtotal"],
            discount_amount=pricing.get("discount_amount") or 0.0,
            applied_coupon_data=_dumps(pricing.get("applied_coupon")),
            tax_rate=pricing.get("tax_rate") or 0.0,
            tax_amount=pricing.get("tax_amount") or 0.0,
            tax_country=pricing.get("tax_country"),
            tax_state=pricing.get("tax_state"),
            shipping_method=pricing["shipping_method"],
            shipping_cost=pricing.get("shipping_cost") or 0.0,
            shipping_rate_info_data=_dumps(pricing.get("shipping_rate_info")),
            total=pricing["total"],
            currency=pricing["currency"],
            shipping_address_data=_dumps(shipping_address),
            payment_method=payment["method"],
            payment_id=payment.get("payment_id"),
            payment_status=payment["status"],
            card_brand=payment.get("card_brand"),
            card_last4=payment.get("card_last4"),
            hold_id=hold_id,
            created_at=now,
            updated_at=now,
        )
        for item in items:
            order.add_items(
                OrderItem(
                    product_id=item["productId"],
                    name=item["name"],
                    quantity=item["quantity"],
                    unit_price=item["unitPrice"],
                )
            )
        return order

    @property
    def applied_coupon(self) -> dict | None:
        return _loads(self.applied_coupon_data)

    @property
    def shipping_rate_info(self) -> dict | None:
        return _loads(self.shipping_rate_info_data)

    @property
    def shipping_address(self) -> dict | None:
        return _loads(self.shipping_address_data)

    @property
    def shipment(self) -> dict | None:
        return _loads(self.shipment_data)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def needs_label(self) -> bool:
        return self.status == OrderStatus.SHIPPED.value and self.shipment_status == ShipmentStatus.LABEL_PENDING.value

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(self, target_status: OrderStatus) -> bool:
        """Move the order to ``target_status``.

        Returns False when the order is already there, so repeating an update
        is harmless. Entering shipped opens the shipment sub-state.
        """
        if self.status == target_status.value:
            return False
        self._assert_can_transition(target_status)

        self.status = target_status.value
        self.updated_at = db_timestamp()
        if target_status == OrderStatus.SHIPPED and self.shipment_data is None:
            self.shipment_status = ShipmentStatus.LABEL_PENDING.value
        return True

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "accountId": str(self.account_id),
            "status": self.status,
            "products": [item.to_dict() for item in self.items],
            "subtotal": _money(self.subtotal),
            "discountAmount": _money(self.discount_amount),
            "appliedCoupon": self.applied_coupon,
            "taxRate": self.tax_rate,
            "taxAmount": _money(self.tax_amount),
            "taxCountry": self.tax_country,
            "taxState": self.tax_state,
            "shippingMethod": self.shipping_method,
            "shippingCost": _money(self.shipping_cost),
            "shippingRateInfo": self.shipping_rate_info,
            "total": _money(self.total),
            "currency": self.currency,
            "shippingAddress": self.shipping_address,
            "paymentMethod": self.payment_method,
            "paymentId": self.payment_id,
            "paymentStatus": self.payment_status,
            "cardBrand": self.card_brand,
            "cardLast4": self.card_last4,
            "shipmentStatus": self.shipment_status,
            "shipment": self.shipment,
            "shippedAt": isoformat(self.shipped_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


# Columns the compare-and-set statements touch
orders = table(
    "orders",
    column("id", SQLString),
    column("account_id", SQLString),
    column("status", SQLString),
    column("shipment_status", SQLString),
    column("shipment_data", SQLText),
    column("label_requested_at", SQLDateTime),
    column("shipped_at", SQLDateTime),
    column("created_at", SQLDateTime),
    column("updated_at", SQLDateTime),
)
