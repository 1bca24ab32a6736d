"""BDD tests for shipping label issuance."""

from pytest_bdd import scenarios

scenarios("features/order_shipping.feature")
