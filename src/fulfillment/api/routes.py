"""FastAPI routes for the Fulfillment domain: shipping rate quotes and label maintenance."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from fulfillment.api.schemas import RateQuoteSchema, ShippingRatesRequest, ShippingRatesResponse
from fulfillment.fulfillment.rates import quote_rates
from fulfillment.fulfillment.shipping import ReleaseStaleLabelClaims
from identity.account.account import Account
from shared.api import MaintenanceRequest, MaintenanceResponse, admin_account, current_account, get_settings
from shared.config import Settings

shipping_router = APIRouter(prefix="/shipping", tags=["shipping"])


@shipping_router.post("/rates", response_model=ShippingRatesResponse)
def get_shipping_rates(
    body: ShippingRatesRequest,
    account: Account = Depends(current_account),
    settings: Settings = Depends(get_settings),
) -> ShippingRatesResponse:
    rates = quote_rates(
        settings,
        account,
        [item.to_requested() for item in body.products],
        shipping_address_id=body.shipping_address_id,
    )
    return ShippingRatesResponse(
        rates=[
            RateQuoteSchema(
                rate_id=rate.rate_id,
                carrier_id=rate.carrier_id,
                carrier_code=rate.carrier_code,
                carrier_name=rate.carrier_name,
                service_code=rate.service_code,
                service_name=rate.service_name,
                price=float(rate.amount),
                currency=rate.currency,
                delivery_days=rate.delivery_days,
                estimated_delivery=rate.estimated_delivery,
            )
            for rate in rates
        ]
    )


@shipping_router.post("/maintenance/release-stale-labels", response_model=MaintenanceResponse)
def release_stale_labels(
    body: MaintenanceRequest | None = None,
    _admin: Account = Depends(admin_account),
) -> MaintenanceResponse:
    """Hand back label claims left behind by an issuer that stopped mid-way."""
    released = current_domain.process(
        ReleaseStaleLabelClaims(as_of=body.as_of if body else None), asynchronous=False
    )
    return MaintenanceResponse(processed=released or 0)
