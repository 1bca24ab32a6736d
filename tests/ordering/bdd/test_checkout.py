"""BDD tests for checkout pricing and its failure paths."""

from decimal import Decimal

import pytest
from ordering.checkout.checkout import Checkout, CheckoutRequest
from ordering.order.order import Order
from ordering.pricing.draft import RequestedItem
from payments.gateway import set_provider
from payments.gateway.fake_adapter import FakePaymentProvider
from protean import current_domain
from protean.exceptions import ProteanException
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/checkout.feature")


@pytest.fixture()
def stripe():
    provider = FakePaymentProvider("stripe")
    set_provider("stripe", provider)
    return provider


def _place(settings, customer, product, outcome, quantity, **kwargs):
    try:
        return Checkout(settings).place_order(
            CheckoutRequest(account_id=str(customer.id), items=(RequestedItem(str(product.id), quantity),), **kwargs)
        )
    except ProteanException as exc:
        outcome["exc"] = exc
        return None


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a percentage coupon "{code}" worth {amount:d}'))
def _(make_coupon, code, amount):
    make_coupon(code=code, type="percentage", amount=amount)


@given(parsers.cfparse('a tax rate of {rate:d} for "{country}" "{state}"'))
def _(make_tax_rate, rate, country, state):
    make_tax_rate(country, state, rate=str(rate))


@given(parsers.cfparse('a stripe payment "{payment_id}" of {amount}'))
def _(stripe, payment_id, amount):
    stripe.register(payment_id, amount, currency="USD")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('the buyer checks out {quantity:d} of the product with coupon "{code}"'),
    target_fixture="order",
)
def _(settings, customer, product, outcome, quantity, code):
    return _place(settings, customer, product, outcome, quantity, coupon_code=code)


@when(
    parsers.cfparse('the buyer checks out {quantity:d} of the product paying with stripe "{payment_id}"'),
    target_fixture="order",
)
def _(settings, customer, product, outcome, stripe, quantity, payment_id):
    return _place(settings, customer, product, outcome, quantity, payment_method="stripe", payment_id=payment_id)


@when(parsers.re(r"the buyer checks out (?P<quantity>\d+) of the product$"), target_fixture="order")
def _(settings, customer, product, outcome, quantity):
    return _place(settings, customer, product, outcome, int(quantity))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order subtotal is {amount}"))
def _(order, amount):
    assert Decimal(str(order.subtotal)) == Decimal(amount)


@then(parsers.cfparse("the order discount is {amount}"))
def _(order, amount):
    assert Decimal(str(order.discount_amount)) == Decimal(amount)


@then(parsers.cfparse("the order tax is {amount}"))
def _(order, amount):
    assert Decimal(str(order.tax_amount)) == Decimal(amount)


@then(parsers.cfparse("the order shipping cost is {amount}"))
def _(order, amount):
    assert Decimal(str(order.shipping_cost)) == Decimal(amount)


@then(parsers.cfparse("the order total is {amount}"))
def _(order, amount):
    assert Decimal(str(order.total)) == Decimal(amount)


@then(parsers.cfparse('the checkout fails with "{code}"'))
def _(order, outcome, code):
    assert order is None
    assert outcome["exc"] is not None, "Expected the checkout to fail"
    assert outcome["exc"].code == code


@then("the buyer has no orders")
def _(customer):
    orders = current_domain.repository_for(Order)._dao.query.filter(account_id=str(customer.id)).all().items
    assert orders == []
