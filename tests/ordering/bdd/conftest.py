"""Shared BDD fixtures and step definitions for checkout and order status flows."""

import pytest
from catalogue.product.product import Product
from fulfillment.carrier import set_carrier
from fulfillment.carrier.fake_adapter import FakeCarrier
from notifications.notification.notification import Notification, NotificationType
from ordering.checkout.checkout import Checkout, CheckoutRequest
from ordering.order.fulfillment import update_order_status
from ordering.order.order import Order
from ordering.pricing.draft import RequestedItem
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def outcome():
    """Container for the error an action raised, if any."""
    return {"exc": None}


@pytest.fixture()
def carrier():
    fake = FakeCarrier()
    set_carrier(fake)
    return fake


def _reload(order):
    return current_domain.repository_for(Order).get(str(order.id))


def _checkout(settings, buyer, product, quantity, **kwargs):
    return Checkout(settings).place_order(
        CheckoutRequest(account_id=str(buyer.id), items=(RequestedItem(str(product.id), quantity),), **kwargs)
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a buyer with a default shipping address", target_fixture="customer")
def _(buyer):
    return buyer


@given(
    parsers.cfparse('a product "{name}" priced {price} with {quantity:d} in stock'),
    target_fixture="product",
)
def _(make_product, name, price, quantity):
    return make_product(name=name, price=price, inventory_quantity=quantity)


@given(parsers.cfparse("an unpaid order for {quantity:d} of the product"), target_fixture="order")
def _(settings, customer, product, carrier, quantity):
    return _checkout(settings, customer, product, quantity)


@given(parsers.cfparse('the order was moved to "{status}"'), target_fixture="order")
def _(settings, order, status):
    return update_order_status(settings, str(order.id), status)


@given("the carrier is unavailable")
def _(carrier):
    carrier.configure(should_succeed=False, failure_reason="Carrier unavailable")


@given("the carrier is back")
def _(carrier):
    carrier.configure(should_succeed=True)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order is moved to "{status}"'), target_fixture="order")
def _(settings, order, outcome, status):
    try:
        return update_order_status(settings, str(order.id), status)
    except ValidationError as exc:
        outcome["exc"] = exc
        return _reload(order)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert _reload(order).status == status


@then(parsers.cfparse('the shipment status is "{status}"'))
def _(order, status):
    assert _reload(order).shipment_status == status


@then("the order has no shipment")
def _(order):
    assert _reload(order).shipment is None


@then("the update fails with a validation error")
def _(outcome):
    assert outcome["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(outcome["exc"], ValidationError)


@then(parsers.cfparse("the label count is {count:d}"))
def _(carrier, count):
    assert len(carrier.labels) == count


@then(parsers.cfparse("the shipping update count is {count:d}"))
def _(order, count):
    updates = current_domain.repository_for(Notification)._dao.query.filter(
        order_id=str(order.id),
        notification_type=NotificationType.SHIPPING_UPDATE.value,
    ).all().items
    assert len(updates) == count


@then(parsers.cfparse("{quantity:d} of the product remain in stock"))
def _(product, quantity):
    assert current_domain.repository_for(Product).get(product.id).inventory_quantity == quantity
