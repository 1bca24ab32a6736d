"""Tests for stock decrements, holds, their release and expiry."""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest
from catalogue.product.product import InventoryStatus, Product
from inventory.stock.expiry import ReleaseExpiredHolds
from inventory.stock.reservation import HoldStock, ReleaseStockHold, ReservationStatus, StockHold, confirm_hold
from inventory.stock.stock import decrement_stock, restore_stock
from protean import UnitOfWork, current_domain
from shared.domain import checkout
from shared.exceptions import InsufficientStock, ReservationExpired, ValidationError
from shared.utils.db import sql_session


def _product(product_id):
    return current_domain.repository_for(Product).get(product_id)


def _hold(hold_id):
    return current_domain.repository_for(StockHold).get(hold_id)


def _hold_stock(quantities, ttl_seconds=900):
    lines = [{"productId": str(product_id), "quantity": quantity} for product_id, quantity in quantities.items()]
    return current_domain.process(HoldStock(lines=json.dumps(lines), ttl_seconds=ttl_seconds), asynchronous=False)


def _release(hold_id, reason="payment_failed"):
    return current_domain.process(ReleaseStockHold(hold_id=hold_id, reason=reason), asynchronous=False)


def _expire(as_of=None):
    return current_domain.process(ReleaseExpiredHolds(as_of=as_of), asynchronous=False)


class TestDecrementStock:
    def test_decrements_and_updates_status(self, make_product):
        product = make_product(inventory_quantity=2)
        with sql_session() as session:
            decrement_stock(session, product.id, 2)
        stored = _product(product.id)
        assert stored.inventory_quantity == 0
        assert stored.inventory_status == InventoryStatus.OUT_OF_STOCK.value

    def test_refuses_more_than_available(self, make_product):
        product = make_product(inventory_quantity=1)
        with pytest.raises(InsufficientStock) as exc, sql_session() as session:
            decrement_stock(session, product.id, 2)
        assert exc.value.product_id == product.id
        assert _product(product.id).inventory_quantity == 1

    def test_backorder_products_can_go_negative(self, make_product):
        product = make_product(inventory_quantity=1, allow_backorder=True)
        with sql_session() as session:
            decrement_stock(session, product.id, 3)
        stored = _product(product.id)
        assert stored.inventory_quantity == -2
        assert stored.inventory_status == InventoryStatus.OUT_OF_STOCK.value

    def test_quantity_must_be_positive(self, make_product):
        product = make_product()
        with pytest.raises(ValidationError), sql_session() as session:
            decrement_stock(session, product.id, 0)

    def test_restore_recomputes_status(self, make_product):
        product = make_product(inventory_quantity=0)
        with sql_session() as session:
            restore_stock(session, product.id, 4)
        stored = _product(product.id)
        assert stored.inventory_quantity == 4
        assert stored.inventory_status == InventoryStatus.IN_STOCK.value


class TestHold:
    def test_hold_decrements_every_product(self, make_product):
        first = make_product(inventory_quantity=5)
        second = make_product(inventory_quantity=5)

        hold_id = _hold_stock({first.id: 2, second.id: 3})

        assert _product(first.id).inventory_quantity == 3
        assert _product(second.id).inventory_quantity == 2
        hold = _hold(hold_id)
        assert hold.status == ReservationStatus.ACTIVE.value
        assert {(line["productId"], line["quantity"]) for line in hold.lines} == {
            (str(first.id), 2),
            (str(second.id), 3),
        }

    def test_failed_hold_rolls_back_earlier_products(self, make_product):
        plenty = make_product(inventory_quantity=5)
        scarce = make_product(inventory_quantity=1)

        with pytest.raises(InsufficientStock):
            _hold_stock({plenty.id: 2, scarce.id: 3})

        assert _product(plenty.id).inventory_quantity == 5
        assert _product(scarce.id).inventory_quantity == 1
        assert current_domain.repository_for(StockHold)._dao.query.all().items == []

    def test_empty_hold_is_rejected(self):
        with pytest.raises(ValidationError):
            current_domain.process(HoldStock(lines="[]"), asynchronous=False)

    def test_concurrent_holds_for_the_last_unit(self, make_product):
        product = make_product(inventory_quantity=1)

        def attempt(_):
            with checkout.domain_context():
                try:
                    _hold_stock({product.id: 1})
                    return True
                except InsufficientStock:
                    return False

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(attempt, range(4)))

        assert results.count(True) == 1
        assert results.count(False) == 3
        assert _product(product.id).inventory_quantity == 0


class TestConfirmAndRelease:
    def test_confirm_marks_the_hold_consumed(self, make_product):
        product = make_product(inventory_quantity=3)
        hold_id = _hold_stock({product.id: 1})

        with UnitOfWork(), sql_session() as session:
            confirm_hold(session, hold_id, "order-1")

        hold = _hold(hold_id)
        assert hold.status == ReservationStatus.CONFIRMED.value
        assert hold.order_id == "order-1"
        # Confirmed holds keep their stock
        assert _release(hold_id, reason="late") is False
        assert _product(product.id).inventory_quantity == 2

    def test_expired_holds_cannot_be_confirmed(self, make_product):
        product = make_product(inventory_quantity=3)
        hold_id = _hold_stock({product.id: 1}, ttl_seconds=60)

        with pytest.raises(ReservationExpired), sql_session() as session:
            confirm_hold(session, hold_id, "order-1", now=datetime.now(UTC) + timedelta(minutes=5))
        assert _hold(hold_id).status == ReservationStatus.ACTIVE.value

    def test_release_restores_stock_once(self, make_product):
        product = make_product(inventory_quantity=3)
        hold_id = _hold_stock({product.id: 2})

        assert _release(hold_id) is True
        assert _release(hold_id) is False

        assert _product(product.id).inventory_quantity == 3
        hold = _hold(hold_id)
        assert hold.status == ReservationStatus.RELEASED.value
        assert hold.reason == "payment_failed"


class TestExpiry:
    def test_release_expired_only_touches_stale_holds(self, make_product):
        product = make_product(inventory_quantity=5)
        stale = _hold_stock({product.id: 1}, ttl_seconds=60)
        fresh = _hold_stock({product.id: 1}, ttl_seconds=3600)

        assert _expire(datetime.now(UTC) + timedelta(minutes=10)) == 1

        assert _hold(stale).status == ReservationStatus.EXPIRED.value
        assert _hold(stale).reason == "expired"
        assert _hold(fresh).status == ReservationStatus.ACTIVE.value
        assert _product(product.id).inventory_quantity == 4

    def test_nothing_expired(self, make_product):
        product = make_product(inventory_quantity=5)
        _hold_stock({product.id: 2})

        assert _expire() == 0
        assert _product(product.id).inventory_quantity == 3

    def test_expired_hold_is_not_released_twice(self, make_product):
        product = make_product(inventory_quantity=5)
        hold_id = _hold_stock({product.id: 2}, ttl_seconds=60)
        later = datetime.now(UTC) + timedelta(hours=1)

        assert _expire(later) == 1
        assert _expire(later) == 0
        assert _release(hold_id) is False
        assert _product(product.id).inventory_quantity == 5
