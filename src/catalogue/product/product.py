"""Product aggregate as seen by checkout: price, sale window, categories and stock."""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from shared.domain import checkout
from shared.money import round_money
from shared.utils.dates import as_utc, db_timestamp, utcnow


class InventoryStatus(Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


def derive_inventory_status(quantity: int) -> str:
    if quantity > 0:
        return InventoryStatus.IN_STOCK.value
    return InventoryStatus.OUT_OF_STOCK.value


@checkout.aggregate(schema_name="products")
class Product:
    name = String(max_length=255)
    price = Float(default=0.0)
    sale_price = Float()
    sale_start_date = DateTime()
    sale_end_date = DateTime()

    category_id = Identifier()
    category_ids_data = Text()

    # Written only by the atomic statements in inventory.stock.stock
    inventory_quantity = Integer(default=0)
    inventory_status = String(
        max_length=20, choices=InventoryStatus, default=InventoryStatus.OUT_OF_STOCK.value
    )
    allow_backorder = Boolean(default=False)

    @classmethod
    def create(
        cls,
        name,
        price,
        inventory_quantity=0,
        allow_backorder=False,
        sale_price=None,
        sale_start_date=None,
        sale_end_date=None,
        category_id=None,
        category_ids=None,
        product_id=None,
    ):
        price = round_money(price)
        if price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})
        if sale_price is not None:
            sale_price = round_money(sale_price)
            if sale_price < 0:
                raise ValidationError({"sale_price": ["Sale price cannot be negative"]})

        values = dict(
            name=name,
            price=float(price),
            sale_price=float(sale_price) if sale_price is not None else None,
            sale_start_date=db_timestamp(sale_start_date) if sale_start_date else None,
            sale_end_date=db_timestamp(sale_end_date) if sale_end_date else None,
            category_id=category_id,
            category_ids_data=json.dumps([str(cid) for cid in category_ids or []]),
            inventory_quantity=inventory_quantity,
            inventory_status=derive_inventory_status(inventory_quantity),
            allow_backorder=allow_backorder,
        )
        if product_id:
            values["id"] = product_id
        return cls(**values)

    @property
    def category_ids(self) -> list[str]:
        return json.loads(self.category_ids_data) if self.category_ids_data else []

    def is_on_sale(self, now: datetime | None = None) -> bool:
        """A sale applies when the sale price undercuts the list price inside the sale window."""
        if self.sale_price is None or round_money(self.sale_price) >= round_money(self.price):
            return False
        now = as_utc(now or utcnow())
        start = as_utc(self.sale_start_date)
        end = as_utc(self.sale_end_date)
        if start is not None and now < start:
            return False
        if end is not None and now > end:
            return False
        return True

    def unit_price(self, now: datetime | None = None) -> Decimal:
        if self.is_on_sale(now):
            return round_money(self.sale_price)
        return round_money(self.price)

    @property
    def category_memberships(self) -> set[str]:
        memberships = set(self.category_ids)
        if self.category_id:
            memberships.add(str(self.category_id))
        return memberships
