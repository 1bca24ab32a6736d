"""Pydantic request/response schemas for the Fulfillment API."""

from pydantic import Field

from ordering.pricing.draft import RequestedItem
from shared.api import CamelModel


class RateItemSchema(CamelModel):
    product_id: str
    quantity: int

    def to_requested(self) -> RequestedItem:
        return RequestedItem(product_id=self.product_id, quantity=self.quantity)


class ShippingRatesRequest(CamelModel):
    products: list[RateItemSchema] = Field(min_length=1)
    shipping_address_id: str | None = None


class RateQuoteSchema(CamelModel):
    rate_id: str
    carrier_id: str | None
    carrier_code: str | None
    carrier_name: str | None
    service_code: str | None
    service_name: str | None
    price: float
    currency: str
    delivery_days: int | None
    estimated_delivery: str | None


class ShippingRatesResponse(CamelModel):
    rates: list[RateQuoteSchema]
