"""Fulfillment coordinator: buys the shipping label once an order ships.

Issuance is claimed with a compare-and-set on the order's shipment status
(label_pending → label_requested) so concurrent status updates produce one
label. The label is stored on the order as soon as it is bought, before the
order is marked labeled, so a retry after any later failure finalizes the
stored label instead of buying another one.

``issue_label`` never raises. Whatever goes wrong is logged and the claim is
handed back (label_requested → label_pending); the status update that
triggered it still succeeds, and the next update to shipped tries again.
Claims left behind by a process that died mid-issuance are handed back by
``ReleaseStaleLabelClaims`` once they are older than the claim timeout.
"""

import json
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain
from sqlalchemy import update

from fulfillment.carrier import get_carrier
from fulfillment.carrier.port import CarrierPort, Label, LabelRequest, Package
from identity.account.account import Account
from notifications.notification.helpers import enqueue_shipping_notification
from ordering.order.order import Order, OrderStatus, ShipmentStatus, orders
from shared.config import Settings
from shared.domain import checkout, domain_settings
from shared.utils.dates import db_timestamp
from shared.utils.db import current_session, sql_session

logger = structlog.get_logger(__name__)

OUNCES_PER_ITEM = 8
MINIMUM_WEIGHT_OUNCES = 16
DEFAULT_SERVICE_CODE = "usps_priority_mail"

SERVICE_CODES = {
    "standard": "usps_priority_mail",
    "express": "usps_priority_mail_express",
    "overnight": "usps_priority_mail_express",
}


def estimate_package(item_count: int) -> Package:
    return Package(weight_ounces=max(MINIMUM_WEIGHT_OUNCES, item_count * OUNCES_PER_ITEM))


def service_code_for(order: Order) -> str:
    rate_info = order.shipping_rate_info or {}
    if rate_info.get("serviceCode"):
        return rate_info["serviceCode"]
    return SERVICE_CODES.get(order.shipping_method, DEFAULT_SERVICE_CODE)


def placeholder_address(name: str | None) -> dict:
    return {
        "fullName": name or "Customer",
        "addressLine1": "123 Test St",
        "city": "Austin",
        "state": "TX",
        "postalCode": "78701",
        "country": "United States",
    }


def shipment_record(label: Label, shipped_at: datetime) -> dict:
    return {
        "labelId": label.label_id,
        "shipmentId": label.shipment_id,
        "trackingNumber": label.tracking_number,
        "trackingUrl": label.tracking_url,
        "carrierCode": label.carrier_code,
        "carrierId": label.carrier_id,
        "serviceCode": label.service_code,
        "serviceName": label.service_name,
        "labelUrl": label.label_url,
        "shippingCost": float(label.shipping_cost),
        "estimatedDelivery": label.estimated_delivery,
        "shippedAt": shipped_at.isoformat(),
    }


def _shipped_at(shipment: dict) -> datetime:
    if shipment.get("shippedAt"):
        return datetime.fromisoformat(shipment["shippedAt"])
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@checkout.command(part_of="Order")
class RecordShippingLabel:
    """Mark a claimed order whose label is stored as labeled."""

    order_id = Identifier(required=True)
    shipped_at = DateTime(required=True)


@checkout.command(part_of="Order")
class ReleaseStaleLabelClaims:
    """Hand back label claims older than the configured claim timeout."""

    as_of = DateTime()  # Optional: defaults to now


@checkout.command_handler(part_of=Order)
class ShippingLabelHandler:
    @handle(RecordShippingLabel)
    def record_shipping_label(self, command: RecordShippingLabel):
        shipped_at = db_timestamp(command.shipped_at)
        result = current_session().execute(
            update(orders)
            .where(
                orders.c.id == command.order_id,
                orders.c.shipment_status == ShipmentStatus.LABEL_REQUESTED.value,
                orders.c.shipment_data.is_not(None),
            )
            .values(
                shipment_status=ShipmentStatus.LABELED.value,
                label_requested_at=None,
                shipped_at=shipped_at,
                updated_at=db_timestamp(),
            )
        )
        if result.rowcount != 1:
            logger.info("Label claim no longer held", order_id=command.order_id)
            return False

        order = current_domain.repository_for(Order).get(command.order_id)
        try:
            account = current_domain.repository_for(Account).get(order.account_id)
        except ObjectNotFoundError:
            account = None
        enqueue_shipping_notification(order, account, domain_settings().notifications)
        return True

    @handle(ReleaseStaleLabelClaims)
    def release_stale_label_claims(self, command: ReleaseStaleLabelClaims):
        as_of = command.as_of or datetime.now(UTC)
        cutoff = db_timestamp(as_of - timedelta(seconds=domain_settings().label_claim_timeout_seconds))
        result = current_session().execute(
            update(orders)
            .where(
                orders.c.shipment_status == ShipmentStatus.LABEL_REQUESTED.value,
                orders.c.label_requested_at <= cutoff,
            )
            .values(shipment_status=ShipmentStatus.LABEL_PENDING.value, label_requested_at=None)
        )
        if result.rowcount:
            logger.warning("Stale label claims released", count=result.rowcount, cutoff=str(cutoff))
        return result.rowcount


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------
class FulfillmentCoordinator:
    def __init__(self, settings: Settings, carrier: CarrierPort | None = None):
        self.settings = settings
        self.carrier = carrier

    def _claim(self, order_id: str) -> bool:
        with sql_session() as session:
            result = session.execute(
                update(orders)
                .where(
                    orders.c.id == order_id,
                    orders.c.status == OrderStatus.SHIPPED.value,
                    orders.c.shipment_status == ShipmentStatus.LABEL_PENDING.value,
                )
                .values(
                    shipment_status=ShipmentStatus.LABEL_REQUESTED.value,
                    label_requested_at=db_timestamp(),
                    updated_at=db_timestamp(),
                )
            )
            return result.rowcount == 1

    def _release_claim(self, order_id: str) -> None:
        try:
            with sql_session() as session:
                session.execute(
                    update(orders)
                    .where(
                        orders.c.id == order_id,
                        orders.c.shipment_status == ShipmentStatus.LABEL_REQUESTED.value,
                    )
                    .values(shipment_status=ShipmentStatus.LABEL_PENDING.value, label_requested_at=None)
                )
        except Exception as exc:
            logger.error("Failed to release label claim", order_id=order_id, error=str(exc))

    def _store_shipment(self, order_id: str, shipment: dict) -> bool:
        with sql_session() as session:
            result = session.execute(
                update(orders)
                .where(
                    orders.c.id == order_id,
                    orders.c.shipment_status == ShipmentStatus.LABEL_REQUESTED.value,
                )
                .values(shipment_data=json.dumps(shipment), updated_at=db_timestamp())
            )
            return result.rowcount == 1

    def build_label_request(self, order: Order, account: Account | None) -> LabelRequest:
        rate_info = order.shipping_rate_info or {}
        ship_to = order.shipping_address or placeholder_address(account.name if account else None)
        return LabelRequest(
            ship_to=ship_to,
            ship_from=dict(self.settings.carrier.ship_from),
            service_code=service_code_for(order),
            packages=(estimate_package(order.item_count),),
            carrier_id=rate_info.get("carrierId") or self.settings.carrier.carrier_id or None,
            rate_id=rate_info.get("rateId"),
        )

    def _buy_label(self, order: Order) -> dict | None:
        """Buy a label and store it on the claimed order. Returns the shipment record."""
        try:
            account = current_domain.repository_for(Account).get(order.account_id)
        except ObjectNotFoundError:
            account = None
        request = self.build_label_request(order, account)

        carrier = self.carrier or get_carrier()
        try:
            label = carrier.create_label(request)
        except Exception as exc:
            logger.error("Failed to create shipping label", order_id=str(order.id), error=str(exc))
            return None

        shipment = shipment_record(label, datetime.now(UTC))
        try:
            stored = self._store_shipment(str(order.id), shipment)
        except Exception as exc:
            logger.error(
                "Failed to store shipping label",
                order_id=str(order.id),
                label_id=label.label_id,
                tracking_number=label.tracking_number,
                error=str(exc),
            )
            return None
        if not stored:
            logger.error(
                "Label claim lost before the label was stored",
                order_id=str(order.id),
                label_id=label.label_id,
                tracking_number=label.tracking_number,
            )
            return None

        logger.info(
            "Shipping label bought",
            order_id=str(order.id),
            label_id=label.label_id,
            tracking_number=label.tracking_number,
            service_code=request.service_code,
        )
        return shipment

    def _issue(self, order_id: str) -> dict | None:
        if not self._claim(order_id):
            logger.info("Label already requested or issued", order_id=order_id)
            return None

        order = current_domain.repository_for(Order).get(order_id)
        shipment = order.shipment
        if shipment is None:
            shipment = self._buy_label(order)
            if shipment is None:
                self._release_claim(order_id)
                return None
        else:
            logger.info("Finalizing previously stored label", order_id=order_id, label_id=shipment.get("labelId"))

        try:
            current_domain.process(
                RecordShippingLabel(order_id=order_id, shipped_at=_shipped_at(shipment)),
                asynchronous=False,
            )
        except Exception as exc:
            logger.error(
                "Failed to finalize shipping label",
                order_id=order_id,
                label_id=shipment.get("labelId"),
                error=str(exc),
            )
            self._release_claim(order_id)
            return None
        return shipment

    def issue_label(self, order_id: str) -> dict | None:
        """Buy a label for a shipped order awaiting one. Returns the shipment record, if any."""
        try:
            return self._issue(order_id)
        except Exception as exc:
            logger.error("Label issuance failed", order_id=order_id, error=str(exc))
            self._release_claim(order_id)
            return None
