"""FastAPI routes for the Payments domain.

Clients start a payment here, complete it with the provider, and then place
the order with the provider's payment id. Nothing here creates an order.
"""

import structlog
from fastapi import APIRouter, Depends

from identity.account.account import Account
from ordering.pricing.draft import PricingDraftBuilder
from payments.api.schemas import (
    CapturePayPalOrderRequest,
    CapturePayPalOrderResponse,
    CreateIntentRequest,
    CreateIntentResponse,
    CreatePayPalOrderRequest,
    CreatePayPalOrderResponse,
    PaymentConfigResponse,
    PaymentMethodSchema,
    PayPalConfigSchema,
    StripeConfigSchema,
)
from payments.gateway import get_provider, is_enabled
from payments.payment.verification import PaymentMethod
from shared.api import current_account, get_settings
from shared.config import Settings
from shared.exceptions import ValidationError
from shared.money import to_minor_units

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


def _require_method(method: PaymentMethod, label: str) -> None:
    if not is_enabled(method.value):
        raise ValidationError({"payment_method": [f"{label} is not configured"]})


@payment_router.get("/config", response_model=PaymentConfigResponse)
def get_payment_config(settings: Settings = Depends(get_settings)) -> PaymentConfigResponse:
    """List the enabled payment methods with their public (never secret) settings."""
    payment = settings.payment
    methods = []
    if payment.paypal_enabled:
        methods.append(
            PaymentMethodSchema(id=PaymentMethod.PAYPAL.value, name="PayPal", description="Fast and secure payment")
        )
    if payment.stripe_enabled:
        methods.append(
            PaymentMethodSchema(
                id=PaymentMethod.STRIPE.value, name="Card", description="Pay with a credit or debit card"
            )
        )

    return PaymentConfigResponse(
        methods=methods,
        paypal=PayPalConfigSchema(client_id=payment.paypal_client_id, mode=payment.paypal_mode)
        if payment.paypal_enabled
        else None,
        stripe=StripeConfigSchema(publishable_key=payment.stripe_publishable_key) if payment.stripe_enabled else None,
    )


@payment_router.post("/stripe/create-intent", response_model=CreateIntentResponse)
def create_stripe_intent(
    body: CreateIntentRequest,
    account: Account = Depends(current_account),
    settings: Settings = Depends(get_settings),
) -> CreateIntentResponse:
    """Price the cart and start a card payment for its total."""
    _require_method(PaymentMethod.STRIPE, "Stripe")

    draft = PricingDraftBuilder(settings).build(
        account,
        [item.to_requested() for item in body.products],
        coupon_code=body.coupon_code,
        shipping_method=body.shipping_method,
        shipping_quote=body.shipping_rate.to_quote() if body.shipping_rate else None,
    )
    amount = to_minor_units(draft.total)
    if amount <= 0:
        raise ValidationError({"amount": ["Order total must be greater than zero"]})

    intent = get_provider(PaymentMethod.STRIPE.value).create_payment(
        draft.total,
        draft.currency,
        metadata={
            "accountId": str(account.id),
            "coupon": draft.applied_coupon.code if draft.applied_coupon else "",
            "shippingMethod": draft.shipping_method,
        },
    )
    logger.info("Payment intent created", account_id=str(account.id), payment_id=intent.payment_id, amount=amount)
    return CreateIntentResponse(
        client_secret=intent.client_secret,
        payment_intent_id=intent.payment_id,
        amount=amount,
        currency=draft.currency.lower(),
    )


@payment_router.post("/paypal/create-order", response_model=CreatePayPalOrderResponse)
def create_paypal_order(
    body: CreatePayPalOrderRequest,
    account: Account = Depends(current_account),
) -> CreatePayPalOrderResponse:
    _require_method(PaymentMethod.PAYPAL, "PayPal")
    created = get_provider(PaymentMethod.PAYPAL.value).create_payment(body.amount, body.currency.upper())
    logger.info("PayPal order created", account_id=str(account.id), payment_id=created.payment_id)
    return CreatePayPalOrderResponse(paypal_order_id=created.payment_id, status=created.status)


@payment_router.post("/paypal/capture", response_model=CapturePayPalOrderResponse)
def capture_paypal_order(
    body: CapturePayPalOrderRequest,
    _account: Account = Depends(current_account),
) -> CapturePayPalOrderResponse:
    _require_method(PaymentMethod.PAYPAL, "PayPal")
    result = get_provider(PaymentMethod.PAYPAL.value).capture_payment(body.paypal_order_id)
    return CapturePayPalOrderResponse(success=result.completed, capture_id=result.capture_id, status=result.status)
