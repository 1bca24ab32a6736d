"""Pydantic request/response schemas for the Ordering API.

These are external contracts (camelCase on the wire), separate from the
internal command objects they are translated into.
"""

from decimal import Decimal

from pydantic import Field

from ordering.pricing.draft import RequestedItem, ShippingQuote
from shared.api import CamelModel
from shared.utils.dates import isoformat


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OrderItemSchema(CamelModel):
    product_id: str
    quantity: int

    def to_requested(self) -> RequestedItem:
        return RequestedItem(product_id=self.product_id, quantity=self.quantity)


class ShippingRateSchema(CamelModel):
    rate_id: str
    carrier_name: str
    service_name: str
    price: Decimal = Field(ge=0)
    carrier_id: str | None = None
    carrier_code: str | None = None
    service_code: str | None = None
    currency: str | None = None
    delivery_days: int | None = None
    estimated_delivery: str | None = None

    def to_quote(self) -> ShippingQuote:
        return ShippingQuote(**self.model_dump())


# ---------------------------------------------------------------------------
# Order requests
# ---------------------------------------------------------------------------
class CreateOrderRequest(CamelModel):
    products: list[OrderItemSchema] = Field(min_length=1)
    coupon_code: str | None = None
    shipping_method: str = "standard"
    shipping_address_id: str | None = None
    shipping_rate: ShippingRateSchema | None = None
    payment_method: str = "none"
    payment_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "products": [{"productId": "P1", "quantity": 2}],
                    "couponCode": "SAVE10",
                    "shippingMethod": "standard",
                    "paymentMethod": "stripe",
                    "paymentId": "pi_123",
                }
            ]
        }
    }


class UpdateOrderRequest(CamelModel):
    status: str


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CreateCouponRequest(CamelModel):
    code: str
    type: str
    amount: Decimal
    is_active: bool = True
    category_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)


class UpdateCouponRequest(CamelModel):
    """Partial update: only the fields present change."""

    code: str | None = None
    type: str | None = None
    amount: Decimal | None = None
    is_active: bool | None = None
    category_ids: list[str] | None = None
    product_ids: list[str] | None = None


class CouponResponse(CamelModel):
    id: str
    code: str
    type: str
    amount: float
    is_active: bool
    category_ids: list[str]
    product_ids: list[str]
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_coupon(cls, coupon) -> "CouponResponse":
        return cls(
            id=str(coupon.id),
            code=coupon.code,
            type=coupon.type,
            amount=coupon.amount,
            is_active=coupon.is_active,
            category_ids=coupon.category_ids,
            product_ids=coupon.product_ids,
            created_at=isoformat(coupon.created_at),
            updated_at=isoformat(coupon.updated_at),
        )


class ApplyCouponRequest(CamelModel):
    code: str
    products: list[OrderItemSchema] = Field(min_length=1)


class CouponPreviewResponse(CamelModel):
    code: str
    type: str
    amount: float
    subtotal: float
    eligible_subtotal: float
    discount_amount: float
    eligible_product_ids: list[str]


# ---------------------------------------------------------------------------
# Tax rates
# ---------------------------------------------------------------------------
class TaxRateRequest(CamelModel):
    country: str | None = None
    state: str | None = None
    rate: Decimal


class TaxRateResponse(CamelModel):
    id: str
    country: str | None
    state: str | None
    rate: float

    @classmethod
    def from_tax_rate(cls, tax_rate) -> "TaxRateResponse":
        return cls(id=str(tax_rate.id), country=tax_rate.country, state=tax_rate.state, rate=tax_rate.rate)
