"""Pydantic request/response schemas for the Payments API."""

from decimal import Decimal

from pydantic import Field

from ordering.api.schemas import OrderItemSchema, ShippingRateSchema
from shared.api import CamelModel


class PaymentMethodSchema(CamelModel):
    id: str
    name: str
    description: str


class PayPalConfigSchema(CamelModel):
    client_id: str
    mode: str


class StripeConfigSchema(CamelModel):
    publishable_key: str


class PaymentConfigResponse(CamelModel):
    methods: list[PaymentMethodSchema]
    paypal: PayPalConfigSchema | None = None
    stripe: StripeConfigSchema | None = None


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------
class CreateIntentRequest(CamelModel):
    """The cart being paid for; it is priced the same way checkout prices it."""

    products: list[OrderItemSchema] = Field(min_length=1)
    coupon_code: str | None = None
    shipping_method: str = "standard"
    shipping_rate: ShippingRateSchema | None = None


class CreateIntentResponse(CamelModel):
    client_secret: str | None
    payment_intent_id: str
    amount: int  # minor units
    currency: str


# ---------------------------------------------------------------------------
# PayPal
# ---------------------------------------------------------------------------
class CreatePayPalOrderRequest(CamelModel):
    amount: Decimal = Field(gt=0)
    currency: str = "USD"


class CreatePayPalOrderResponse(CamelModel):
    paypal_order_id: str
    status: str


class CapturePayPalOrderRequest(CamelModel):
    paypal_order_id: str


class CapturePayPalOrderResponse(CamelModel):
    success: bool
    capture_id: str | None
    status: str
