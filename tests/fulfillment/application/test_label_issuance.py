"""Tests for label issuance driven by order status updates."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest
from fulfillment.carrier import set_carrier
from fulfillment.carrier.fake_adapter import FakeCarrier
from fulfillment.fulfillment import shipping
from fulfillment.fulfillment.shipping import FulfillmentCoordinator, ReleaseStaleLabelClaims
from notifications.notification.notification import Notification, NotificationType
from ordering.checkout.checkout import Checkout, CheckoutRequest
from ordering.order.fulfillment import update_order_status
from ordering.order.order import Order, OrderStatus, ShipmentStatus
from ordering.pricing.draft import RequestedItem
from protean import current_domain
from shared.domain import checkout
from shared.exceptions import ObjectNotFoundError, ValidationError


@pytest.fixture()
def carrier():
    fake = FakeCarrier()
    set_carrier(fake)
    return fake


@pytest.fixture()
def order(settings, buyer, make_product):
    product = make_product(price="20.00", inventory_quantity=5)
    return Checkout(settings).place_order(
        CheckoutRequest(
            account_id=str(buyer.id),
            items=(RequestedItem(str(product.id), 3),),
            shipping_method="express",
        )
    )


def _update(settings, order_id, status):
    return update_order_status(settings, str(order_id), status)


def _load(order_id):
    return current_domain.repository_for(Order).get(str(order_id))


def _shipping_updates(order_id):
    return current_domain.repository_for(Notification)._dao.query.filter(
        order_id=str(order_id),
        notification_type=NotificationType.SHIPPING_UPDATE.value,
    ).all().items


class TestStatusUpdates:
    def test_unknown_status(self, settings, order):
        with pytest.raises(ValidationError):
            _update(settings, order.id, "lost")

    def test_missing_order(self, settings):
        with pytest.raises(ObjectNotFoundError):
            _update(settings, "missing", "processing")

    def test_invalid_transition_is_rejected(self, settings, order):
        with pytest.raises(ValidationError):
            _update(settings, order.id, "delivered")
        assert _load(order.id).status == OrderStatus.PENDING.value

    def test_cancel_from_pending(self, settings, order, carrier):
        canceled = _update(settings, order.id, "canceled")
        assert canceled.status == OrderStatus.CANCELED.value
        assert canceled.shipment_status is None
        assert carrier.labels == []


class TestLabelIssuance:
    def test_shipping_issues_a_label(self, settings, order, carrier):
        _update(settings, order.id, "processing")
        updated = _update(settings, order.id, "shipped")

        assert updated.status == OrderStatus.SHIPPED.value
        assert updated.shipment_status == ShipmentStatus.LABELED.value
        assert updated.shipment["trackingNumber"].startswith("FAKE-")
        assert updated.shipment["serviceCode"] == "usps_priority_mail_express"
        assert updated.shipped_at is not None
        assert updated.label_requested_at is None

        request = carrier.labels[0]
        assert request.ship_to["addressLine1"] == "1 Main St"
        assert request.packages[0].weight_ounces == 24
        assert len(_shipping_updates(order.id)) == 1

    def test_repeated_shipped_update_issues_one_label(self, settings, order, carrier):
        _update(settings, order.id, "processing")
        first = _update(settings, order.id, "shipped")
        second = _update(settings, order.id, "shipped")

        assert len(carrier.labels) == 1
        assert second.shipment == first.shipment
        assert len(_shipping_updates(order.id)) == 1

    def test_carrier_failure_leaves_order_awaiting_label(self, settings, order, carrier):
        carrier.configure(should_succeed=False, failure_reason="Carrier down")
        _update(settings, order.id, "processing")

        updated = _update(settings, order.id, "shipped")

        assert updated.status == OrderStatus.SHIPPED.value
        assert updated.shipment_status == ShipmentStatus.LABEL_PENDING.value
        assert updated.shipment is None
        assert _shipping_updates(order.id) == []

    def test_repeating_shipped_retries_a_failed_label(self, settings, order, carrier):
        carrier.configure(should_succeed=False)
        _update(settings, order.id, "processing")
        _update(settings, order.id, "shipped")

        carrier.configure(should_succeed=True)
        updated = _update(settings, order.id, "shipped")

        assert updated.shipment_status == ShipmentStatus.LABELED.value
        assert len(carrier.labels) == 1

    def test_failure_after_the_label_is_bought_keeps_it_for_the_retry(self, settings, order, carrier, monkeypatch):
        calls = []
        original = shipping.enqueue_shipping_notification

        def flaky_enqueue(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise RuntimeError("notification store unavailable")
            return original(*args, **kwargs)

        monkeypatch.setattr(shipping, "enqueue_shipping_notification", flaky_enqueue)
        _update(settings, order.id, "processing")

        first = _update(settings, order.id, "shipped")

        assert first.status == OrderStatus.SHIPPED.value
        assert first.shipment_status == ShipmentStatus.LABEL_PENDING.value
        assert first.shipment["labelId"].startswith("se-")
        assert _shipping_updates(order.id) == []

        second = _update(settings, order.id, "shipped")

        assert second.shipment_status == ShipmentStatus.LABELED.value
        assert second.shipment == first.shipment
        assert len(carrier.labels) == 1
        assert len(_shipping_updates(order.id)) == 1

    def test_issue_label_never_raises(self, settings, order, carrier, monkeypatch):
        _update(settings, order.id, "processing")

        def broken_claim(self, order_id):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(FulfillmentCoordinator, "_claim", broken_claim)
        updated = _update(settings, order.id, "shipped")

        assert updated.status == OrderStatus.SHIPPED.value
        assert updated.shipment_status == ShipmentStatus.LABEL_PENDING.value
        assert carrier.labels == []

    def test_concurrent_issuance_buys_one_label(self, settings, order, carrier):
        carrier.configure(should_succeed=False)
        _update(settings, order.id, "processing")
        _update(settings, order.id, "shipped")
        carrier.configure(should_succeed=True)

        coordinator = FulfillmentCoordinator(settings, carrier=carrier)

        def issue(_):
            with checkout.domain_context():
                return coordinator.issue_label(str(order.id))

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(issue, range(4)))

        assert len([result for result in results if result is not None]) == 1
        assert len(carrier.labels) == 1

    def test_delivered_keeps_the_shipment(self, settings, order, carrier):
        _update(settings, order.id, "processing")
        shipped = _update(settings, order.id, "shipped")
        delivered = _update(settings, order.id, "delivered")

        assert delivered.status == OrderStatus.DELIVERED.value
        assert delivered.shipment == shipped.shipment


class TestStaleLabelClaims:
    def _claimed(self, settings, order, carrier):
        carrier.configure(should_succeed=False)
        _update(settings, order.id, "processing")
        _update(settings, order.id, "shipped")
        # A claim taken by an issuer that never finished
        assert FulfillmentCoordinator(settings, carrier=carrier)._claim(str(order.id))
        assert _load(order.id).shipment_status == ShipmentStatus.LABEL_REQUESTED.value

    def _release(self, as_of):
        return current_domain.process(ReleaseStaleLabelClaims(as_of=as_of), asynchronous=False)

    def test_fresh_claims_are_left_alone(self, settings, order, carrier):
        self._claimed(settings, order, carrier)

        assert self._release(datetime.now(UTC)) == 0
        assert _load(order.id).shipment_status == ShipmentStatus.LABEL_REQUESTED.value

    def test_stale_claims_are_handed_back(self, settings, order, carrier):
        self._claimed(settings, order, carrier)
        later = datetime.now(UTC) + timedelta(seconds=settings.label_claim_timeout_seconds + 1)

        assert self._release(later) == 1
        stored = _load(order.id)
        assert stored.shipment_status == ShipmentStatus.LABEL_PENDING.value
        assert stored.label_requested_at is None

        carrier.configure(should_succeed=True)
        assert _update(settings, order.id, "shipped").shipment_status == ShipmentStatus.LABELED.value
        assert len(carrier.labels) == 1
