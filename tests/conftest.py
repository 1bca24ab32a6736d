import json
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

DATABASE_DIR = tempfile.mkdtemp(prefix="checkout-tests-")
DATABASE_URL = f"sqlite:///{Path(DATABASE_DIR) / 'checkout.db'}"


def build_settings(**overrides):
    from shared.config import NotificationSettings, Settings

    values = dict(
        database_url=DATABASE_URL,
        environment="test",
        fallback_shipping_costs={
            "standard": Decimal("5.00"),
            "express": Decimal("15.00"),
            "overnight": Decimal("30.00"),
        },
        notifications=NotificationSettings(staff_recipients=("staff@example.com",), backoff_seconds=30),
    )
    values.update(overrides)
    return Settings(**values)


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Initialize the checkout domain against a throwaway SQLite file and push
    its domain_context, so `current_domain` resolves everywhere in the tests.
    """
    from shared.domain import init_domain

    domain = init_domain(build_settings())
    domain.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path) or "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db(request):
    from shared.domain import checkout
    from shared.utils.db import drop_db, setup_db

    setup_db(checkout)

    yield

    drop_db(checkout)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Clean every database and put every adapter registry back to its fakes after each test."""
    yield

    from protean import current_domain

    from fulfillment.carrier import reset_carrier
    from notifications.channel import reset_channels
    from payments.gateway import reset_providers

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_providers()
    reset_carrier()
    reset_channels()


@pytest.fixture(autouse=True)
def settings():
    """Test settings, installed as the settings the domain's handlers see."""
    from shared.domain import init_domain

    test_settings = build_settings()
    init_domain(test_settings)
    return test_settings


@pytest.fixture()
def use_settings():
    """Install settings with overrides, e.g. ``use_settings(reservation_ttl_seconds=0)``."""
    from shared.domain import init_domain

    def _use(**overrides):
        custom = build_settings(**overrides)
        init_domain(custom)
        return custom

    return _use


@pytest.fixture()
def make_account():
    from protean import current_domain

    from identity.account.account import Account, ClientType

    def _make(**kwargs):
        kwargs.setdefault("email", "buyer@example.com")
        kwargs.setdefault("name", "Ada Buyer")
        kwargs.setdefault("client_type", ClientType.C2B.value)
        account = Account.create(**kwargs)
        current_domain.repository_for(Account).add(account)
        return account

    return _make


@pytest.fixture()
def make_product():
    from protean import current_domain

    from catalogue.product.product import Product

    def _make(name="Widget", price="25.00", inventory_quantity=10, **kwargs):
        product = Product.create(name=name, price=price, inventory_quantity=inventory_quantity, **kwargs)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_coupon():
    from protean import current_domain

    from ordering.pricing.coupon_management import CreateCoupon
    from ordering.pricing.coupons import Coupon

    def _make(code="SAVE10", type="percentage", amount=10, category_ids=None, product_ids=None, **kwargs):
        coupon_id = current_domain.process(
            CreateCoupon(
                code=code,
                type=type,
                amount=float(amount),
                category_ids=json.dumps(category_ids) if category_ids is not None else None,
                product_ids=json.dumps(product_ids) if product_ids is not None else None,
                **kwargs,
            ),
            asynchronous=False,
        )
        return current_domain.repository_for(Coupon).get(coupon_id)

    return _make


@pytest.fixture()
def make_tax_rate():
    from protean import current_domain

    from ordering.pricing.tax import TaxRate
    from ordering.pricing.tax_management import SetTaxRate

    def _make(country, state=None, rate="8"):
        stored = current_domain.process(
            SetTaxRate(country=country, state=state, rate=float(rate)),
            asynchronous=False,
        )
        return current_domain.repository_for(TaxRate).get(stored["id"])

    return _make


@pytest.fixture()
def buyer(make_account):
    return make_account(
        billing_address={"country": "United States", "state": "Texas"},
        shipping_addresses=[
            {
                "id": "addr-1",
                "isDefault": True,
                "fullName": "Ada Buyer",
                "phone": "555-0100",
                "addressLine1": "1 Main St",
                "city": "Austin",
                "state": "TX",
                "postalCode": "78701",
                "country": "United States",
            }
        ],
    )


@pytest.fixture()
def admin(make_account):
    from identity.account.account import AccountRole

    return make_account(email="admin@example.com", name="Admin", role=AccountRole.ADMIN.value)
