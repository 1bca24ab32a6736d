"""Atomic stock operations on the product inventory columns.

Every change is a single UPDATE whose WHERE clause carries the guard, so the
check and the decrement cannot be separated by a concurrent writer. SET
expressions see the pre-update row, which is what the status CASE relies on.
The statements run on the session of the caller's unit of work.
"""

import structlog
from sqlalchemy import Boolean, Integer, String, and_, case, column, or_, table, update
from sqlalchemy.orm import Session

from catalogue.product.product import InventoryStatus
from shared.exceptions import InsufficientStock, ObjectNotFoundError, ValidationError

logger = structlog.get_logger(__name__)

products = table(
    "products",
    column("id", String),
    column("inventory_quantity", Integer),
    column("inventory_status", String),
    column("allow_backorder", Boolean),
)


def _status_after(quantity_expression):
    return case(
        (quantity_expression > 0, InventoryStatus.IN_STOCK.value),
        else_=InventoryStatus.OUT_OF_STOCK.value,
    )


def decrement_stock(session: Session, product_id: str, quantity: int) -> None:
    """Take ``quantity`` units of a product out of stock.

    Products that do not allow backorder are only decremented while they hold
    enough units and are not flagged out of stock; otherwise
    ``InsufficientStock`` is raised and nothing changes. Backorder products are
    decremented unconditionally and may go below zero.
    """
    if quantity <= 0:
        raise ValidationError({"quantity": ["Quantity must be positive"]})

    remaining = products.c.inventory_quantity - quantity
    result = session.execute(
        update(products)
        .where(
            products.c.id == product_id,
            or_(
                products.c.allow_backorder.is_(True),
                and_(
                    products.c.inventory_quantity >= quantity,
                    products.c.inventory_status != InventoryStatus.OUT_OF_STOCK.value,
                ),
            ),
        )
        .values(inventory_quantity=remaining, inventory_status=_status_after(remaining))
    )
    if result.rowcount != 1:
        logger.info("Stock decrement refused", product_id=product_id, quantity=quantity)
        raise InsufficientStock(product_id)


def restore_stock(session: Session, product_id: str, quantity: int) -> None:
    """Put ``quantity`` units back, recomputing the status from the new count."""
    restored = products.c.inventory_quantity + quantity
    result = session.execute(
        update(products)
        .where(products.c.id == product_id)
        .values(inventory_quantity=restored, inventory_status=_status_after(restored))
    )
    if result.rowcount != 1:
        raise ObjectNotFoundError({"product_id": [f"Product {product_id} does not exist"]})
