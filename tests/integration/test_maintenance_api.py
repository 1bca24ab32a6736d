"""Integration tests for the maintenance endpoints an external scheduler calls."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from app import create_app
from catalogue.product.product import Product
from fastapi.testclient import TestClient
from inventory.stock.reservation import HoldStock
from protean import current_domain


@pytest.fixture()
def client(settings):
    return TestClient(create_app(settings))


def _as(account):
    return {"X-Account-Id": str(account.id)}


def _later(seconds=3600):
    return {"asOf": (datetime.now(UTC) + timedelta(seconds=seconds)).isoformat()}


class TestMaintenanceEndpoints:
    @pytest.mark.parametrize(
        "path",
        [
            "/inventory/maintenance/release-expired",
            "/notifications/maintenance/dispatch-due",
            "/shipping/maintenance/release-stale-labels",
        ],
    )
    def test_admin_only(self, client, buyer, path):
        assert client.post(path, headers=_as(buyer)).status_code == 403

    @pytest.mark.parametrize(
        "path",
        [
            "/inventory/maintenance/release-expired",
            "/notifications/maintenance/dispatch-due",
            "/shipping/maintenance/release-stale-labels",
        ],
    )
    def test_nothing_to_do(self, client, admin, path):
        response = client.post(path, headers=_as(admin))
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "processed": 0}

    def test_expired_holds_give_their_stock_back(self, client, admin, make_product):
        product = make_product(inventory_quantity=5)
        current_domain.process(
            HoldStock(lines=json.dumps([{"productId": str(product.id), "quantity": 2}]), ttl_seconds=60),
            asynchronous=False,
        )
        assert current_domain.repository_for(Product).get(product.id).inventory_quantity == 3

        response = client.post("/inventory/maintenance/release-expired", headers=_as(admin), json=_later())

        assert response.json()["processed"] == 1
        assert current_domain.repository_for(Product).get(product.id).inventory_quantity == 5
