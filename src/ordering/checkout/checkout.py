"""Checkout: coordinates the Pricing → Inventory → Payment → Order flow.

Flow:
    1. Price the cart (reads only)
    2. HoldStock → stock decremented under an ACTIVE hold
    3. Verify the claimed payment with its provider
    4a. PlaceOrder → hold confirmed, order committed (end)
    4b. Any failure after step 2 → ReleaseStockHold, error propagates (end)

Each step that writes is its own command and unit of work, so payment
verification never runs while database locks are held.
"""

import json
from dataclasses import dataclass, field
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ProteanException
from protean.utils.globals import current_domain

from identity.account.account import Account
from inventory.stock.reservation import HoldStock, ReleaseStockHold
from ordering.order.creation import place_order_command
from ordering.order.order import Order
from ordering.pricing.draft import PricingDraftBuilder, RequestedItem, ShippingQuote
from payments.payment.verification import PaymentMethod, PaymentVerifier
from shared.config import Settings
from shared.exceptions import (
    InsufficientStock,
    NotAuthenticated,
    PaymentProviderUnavailable,
    PaymentVerificationFailed,
    ReservationExpired,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutRequest:
    account_id: str
    items: tuple[RequestedItem, ...]
    coupon_code: str | None = None
    shipping_method: str = "standard"
    shipping_address_id: str | None = None
    shipping_quote: ShippingQuote | None = None
    payment_method: str = PaymentMethod.NONE.value
    payment_id: str | None = None
    order_id: str = field(default_factory=lambda: str(uuid4()))


def _release_reason(exc: Exception) -> str:
    if isinstance(exc, (PaymentVerificationFailed, PaymentProviderUnavailable)):
        return "payment_failed"
    if isinstance(exc, ReservationExpired):
        return "expired_before_commit"
    return "checkout_failed"


class Checkout:
    def __init__(self, settings: Settings, verifier: PaymentVerifier | None = None):
        self.settings = settings
        self.verifier = verifier or PaymentVerifier()

    def _account(self, account_id: str) -> Account:
        try:
            return current_domain.repository_for(Account).get(account_id)
        except ObjectNotFoundError:
            raise NotAuthenticated({"account": ["Unknown account"]}) from None

    def _release(self, hold_id: str, reason: str) -> None:
        try:
            current_domain.process(ReleaseStockHold(hold_id=hold_id, reason=reason), asynchronous=False)
        except ProteanException as exc:
            # The expiry sweep gives the stock back later
            logger.error("Stock hold release failed", hold_id=hold_id, reason=reason, error=str(exc))

    def place_order(self, request: CheckoutRequest) -> Order:
        account = self._account(request.account_id)
        draft = PricingDraftBuilder(self.settings).build(
            account,
            request.items,
            coupon_code=request.coupon_code,
            shipping_method=request.shipping_method,
            shipping_quote=request.shipping_quote,
        )
        shipping_address = account.shipping_address_snapshot(request.shipping_address_id)

        lines = [{"productId": pid, "quantity": qty} for pid, qty in draft.quantities.items()]
        try:
            hold_id = current_domain.process(
                HoldStock(lines=json.dumps(lines), ttl_seconds=self.settings.reservation_ttl_seconds),
                asynchronous=False,
            )
        except InsufficientStock as exc:
            logger.info("Checkout refused, stock unavailable", account_id=request.account_id, product_id=exc.product_id)
            raise

        try:
            verification = self.verifier.verify(
                request.payment_method,
                request.payment_id,
                expected_total=draft.total,
                expected_currency=draft.currency,
            )
            current_domain.process(
                place_order_command(
                    order_id=request.order_id,
                    account_id=request.account_id,
                    hold_id=hold_id,
                    draft=draft,
                    verification=verification,
                    shipping_address=shipping_address,
                ),
                asynchronous=False,
            )
        except Exception as exc:
            reason = _release_reason(exc)
            logger.warning("Checkout failed after stock hold", hold_id=hold_id, reason=reason, error=str(exc))
            self._release(hold_id, reason)
            raise

        return current_domain.repository_for(Order).get(request.order_id)


def place_order(settings: Settings, request: CheckoutRequest) -> Order:
    return Checkout(settings).place_order(request)
