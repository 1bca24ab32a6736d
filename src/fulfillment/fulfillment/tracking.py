"""Tracking lookup for an order's shipment.

Never fails because of the carrier: a carrier error is reported in the
response body next to the stored shipment record.
"""

import structlog

from fulfillment.carrier import get_carrier
from fulfillment.carrier.port import CarrierPort
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def tracking_for(order: Order, carrier: CarrierPort | None = None) -> dict:
    shipment = order.shipment
    if not shipment or not shipment.get("trackingNumber") or not shipment.get("carrierCode"):
        return {
            "hasTracking": False,
            "message": "This order has not been shipped yet",
            "shipment": shipment,
        }

    carrier = carrier or get_carrier()
    try:
        tracking = carrier.get_tracking(shipment["carrierCode"], shipment["trackingNumber"])
    except Exception as exc:
        logger.warning("Tracking lookup failed", order_id=str(order.id), error=str(exc))
        return {
            "hasTracking": True,
            "orderId": str(order.id),
            "shipment": shipment,
            "tracking": None,
            "trackingError": str(exc),
        }

    return {"hasTracking": True, "orderId": str(order.id), "shipment": shipment, "tracking": tracking}
