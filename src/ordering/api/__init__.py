"""Ordering domain API package."""

from ordering.api.routes import coupon_router, order_router, tax_router

__all__ = ["order_router", "coupon_router", "tax_router"]
