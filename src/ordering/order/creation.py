"""Order creation: command and handler.

``PlaceOrder`` carries a fully priced checkout and the payment outcome. The
handler commits it as one unit of work: the stock hold is confirmed, the
order is added, the account's history and cart are updated and the
notifications are queued.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from identity.account.account import Account
from inventory.stock.reservation import confirm_hold
from notifications.notification.helpers import enqueue_order_notifications
from ordering.order.order import Order
from ordering.pricing.draft import PricingDraft
from payments.payment.verification import PaymentVerification
from shared.domain import checkout, domain_settings
from shared.utils.db import current_session

logger = structlog.get_logger(__name__)


@checkout.command(part_of="Order")
class PlaceOrder:
    order_id = Identifier(required=True)
    account_id = Identifier(required=True)
    hold_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"productId", "name", "quantity", "unitPrice"}]

    subtotal = Float(required=True)
    discount_amount = Float(default=0.0)
    applied_coupon = Text()  # JSON
    tax_rate = Float(default=0.0)
    tax_amount = Float(default=0.0)
    tax_country = String(max_length=100)
    tax_state = String(max_length=100)
    shipping_method = String(required=True, max_length=200)
    shipping_cost = Float(default=0.0)
    shipping_rate_info = Text()  # JSON
    total = Float(required=True)
    currency = String(max_length=3, default="USD")
    shipping_address = Text()  # JSON

    payment_method = String(required=True, max_length=20)
    payment_id = String(max_length=255)
    payment_status = String(required=True, max_length=20)
    card_brand = String(max_length=50)
    card_last4 = String(max_length=4)


def _dumps(value):
    return json.dumps(value) if value is not None else None


def _loads(value):
    return json.loads(value) if value else None


def place_order_command(
    order_id: str,
    account_id: str,
    hold_id: str,
    draft: PricingDraft,
    verification: PaymentVerification,
    shipping_address: dict | None,
) -> PlaceOrder:
    """Translate a priced draft and its payment outcome into a ``PlaceOrder``."""
    return PlaceOrder(
        order_id=order_id,
        account_id=account_id,
        hold_id=hold_id,
        items=json.dumps(
            [
                {
                    "productId": line.product_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "unitPrice": float(line.unit_price),
                }
                for line in draft.lines
            ]
        ),
        subtotal=float(draft.subtotal),
        discount_amount=float(draft.discount_amount),
        applied_coupon=_dumps(draft.applied_coupon.snapshot() if draft.applied_coupon else None),
        tax_rate=float(draft.tax_rate),
        tax_amount=float(draft.tax_amount),
        tax_country=draft.tax_country,
        tax_state=draft.tax_state,
        shipping_method=draft.shipping_method,
        shipping_cost=float(draft.shipping_cost),
        shipping_rate_info=_dumps(draft.shipping_quote.snapshot() if draft.shipping_quote else None),
        total=float(draft.total),
        currency=draft.currency,
        shipping_address=_dumps(shipping_address),
        payment_method=verification.method,
        payment_id=verification.payment_id,
        payment_status=verification.status,
        card_brand=verification.card_brand,
        card_last4=verification.card_last4,
    )


@checkout.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command: PlaceOrder):
        # Raises ReservationExpired, rolling the whole unit of work back
        confirm_hold(current_session(), command.hold_id, command.order_id)

        items = json.loads(command.items)
        order = Order.create(
            order_id=command.order_id,
            account_id=command.account_id,
            items=items,
            pricing={
                "subtotal": command.subtotal,
                "discount_amount": command.discount_amount,
                "applied_coupon": _loads(command.applied_coupon),
                "tax_rate": command.tax_rate,
                "tax_amount": command.tax_amount,
                "tax_country": command.tax_country,
                "tax_state": command.tax_state,
                "shipping_method": command.shipping_method,
                "shipping_cost": command.shipping_cost,
                "shipping_rate_info": _loads(command.shipping_rate_info),
                "total": command.total,
                "currency": command.currency,
            },
            payment={
                "method": command.payment_method,
                "payment_id": command.payment_id,
                "status": command.payment_status,
                "card_brand": command.card_brand,
                "card_last4": command.card_last4,
            },
            shipping_address=_loads(command.shipping_address),
            hold_id=command.hold_id,
        )
        current_domain.repository_for(Order).add(order)

        account_repo = current_domain.repository_for(Account)
        account = account_repo.get(command.account_id)
        account.record_order(str(order.id), [item["productId"] for item in items])
        account_repo.add(account)

        enqueue_order_notifications(order, account, domain_settings().notifications)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            account_id=str(order.account_id),
            total=order.total,
            status=order.status,
            payment_status=order.payment_status,
        )
        return str(order.id)
