"""Checkout domain: the protean composition root.

Accounts, products, coupons, tax rates, orders, stock holds and notifications
are all registered on this one domain, so a checkout commit (confirm the
hold, insert the order, update the account, queue the notifications) is a
single unit of work against a single database.
"""

import importlib

import structlog
from protean.domain import Domain

from shared.config import Settings

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)

# Importing these modules registers their aggregates, entities, commands,
# events and handlers with the domain.
ELEMENT_MODULES = (
    "identity.account.account",
    "catalogue.product.product",
    "ordering.pricing.coupons",
    "ordering.pricing.coupon_management",
    "ordering.pricing.tax",
    "ordering.pricing.tax_management",
    "inventory.stock.reservation",
    "inventory.stock.expiry",
    "ordering.order.order",
    "ordering.order.creation",
    "ordering.order.fulfillment",
    "fulfillment.fulfillment.shipping",
    "notifications.notification.notification",
    "notifications.notification.dispatch",
    "notifications.notification.retry",
)

_settings = Settings()
_initialized = False


def database_config(database_url: str) -> dict:
    if database_url.startswith("postgresql"):
        return {"provider": "postgresql", "database_uri": database_url}
    return {"provider": "sqlite", "database_uri": database_url}


def domain_settings() -> Settings:
    """Settings the domain was initialized with, for handlers run by the engine."""
    return _settings


def init_domain(settings: Settings) -> Domain:
    """Configure and initialize the domain once per process."""
    global _initialized, _settings
    _settings = settings
    if _initialized:
        return checkout

    checkout.config["databases"]["default"] = database_config(settings.database_url)
    checkout.config["command_processing"] = "sync"
    checkout.config["event_processing"] = settings.event_processing
    if settings.event_store_url:
        checkout.config["event_store"] = {"provider": "message_db", "database_uri": settings.event_store_url}

    for module in ELEMENT_MODULES:
        importlib.import_module(module)
    checkout.init(traverse=False)
    _initialized = True

    logger.info(
        "Domain initialized",
        domain=checkout.name,
        provider=checkout.config["databases"]["default"]["provider"],
        event_processing=settings.event_processing,
    )
    return checkout
