"""Shipping rate quotes for a prospective order."""

import structlog

from fulfillment.carrier import get_carrier
from fulfillment.carrier.port import CarrierPort, RateQuote
from fulfillment.fulfillment.shipping import estimate_package
from identity.account.account import Account
from ordering.pricing.draft import RequestedItem, merge_items
from shared.config import Settings
from shared.exceptions import ValidationError

logger = structlog.get_logger(__name__)


def quote_rates(
    settings: Settings,
    account: Account,
    items: list[RequestedItem],
    shipping_address_id: str | None = None,
    carrier: CarrierPort | None = None,
) -> list[RateQuote]:
    """Quote carrier rates for shipping ``items`` to one of the account's addresses."""
    ship_to = account.shipping_address_snapshot(shipping_address_id)
    if ship_to is None:
        raise ValidationError({"shipping_address_id": ["No shipping address on file"]})

    item_count = sum(merge_items(items).values())
    carrier = carrier or get_carrier()
    rates = carrier.get_rates(
        ship_to=ship_to,
        ship_from=dict(settings.carrier.ship_from),
        packages=(estimate_package(item_count),),
    )
    logger.info("Shipping rates quoted", account_id=str(account.id), count=len(rates))
    return rates
