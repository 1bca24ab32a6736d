"""Stock holds: short-lived reservations taken before payment is verified.

A hold moves through ACTIVE → CONFIRMED (order placed), RELEASED (checkout
failed) or EXPIRED (abandoned and swept). Each status change is a
compare-and-set on ACTIVE, so stock is given back at most once no matter how
many callers race to release the same hold.
"""

import json
from datetime import datetime, timedelta
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from sqlalchemy import DateTime as SQLDateTime
from sqlalchemy import String as SQLString
from sqlalchemy import Text as SQLText
from sqlalchemy import column, select, table, update
from sqlalchemy.orm import Session

from inventory.stock.stock import decrement_stock, restore_stock
from shared.domain import checkout
from shared.exceptions import ReservationExpired
from shared.utils.dates import db_timestamp
from shared.utils.db import current_session

logger = structlog.get_logger(__name__)


class ReservationStatus(Enum):
    ACTIVE = "Active"
    CONFIRMED = "Confirmed"
    RELEASED = "Released"
    EXPIRED = "Expired"


@checkout.aggregate(schema_name="stock_holds")
class StockHold:
    status = String(max_length=20, choices=ReservationStatus, default=ReservationStatus.ACTIVE.value)
    order_id = Identifier()
    reason = String(max_length=200)
    lines_data = Text()  # JSON: [{"productId", "quantity"}]
    created_at = DateTime()
    expires_at = DateTime()
    resolved_at = DateTime()

    @property
    def lines(self) -> list[dict]:
        return json.loads(self.lines_data) if self.lines_data else []


# Status columns are only ever changed through these compare-and-set statements
stock_holds = table(
    "stock_holds",
    column("id", SQLString),
    column("status", SQLString),
    column("order_id", SQLString),
    column("reason", SQLString),
    column("lines_data", SQLText),
    column("expires_at", SQLDateTime),
    column("resolved_at", SQLDateTime),
)


@checkout.command(part_of="StockHold")
class HoldStock:
    hold_id = Identifier()
    lines = Text(required=True)  # JSON: [{"productId", "quantity"}]
    ttl_seconds = Integer(default=900)


@checkout.command(part_of="StockHold")
class ReleaseStockHold:
    hold_id = Identifier(required=True)
    reason = String(required=True, max_length=200)
    status = String(choices=ReservationStatus, default=ReservationStatus.RELEASED.value)


@checkout.command_handler(part_of=StockHold)
class StockHoldCommandHandler:
    @handle(HoldStock)
    def hold_stock(self, command):
        """Record the hold and decrement stock for every line in one unit of work.

        A refused decrement raises ``InsufficientStock``; the unit of work rolls
        back, taking the hold row and every decrement already made with it.
        """
        lines = json.loads(command.lines)
        if not lines:
            raise ValidationError({"products": ["Nothing to reserve"]})

        now = db_timestamp()
        values = dict(
            status=ReservationStatus.ACTIVE.value,
            lines_data=command.lines,
            created_at=now,
            expires_at=now + timedelta(seconds=command.ttl_seconds),
        )
        if command.hold_id:
            values["id"] = command.hold_id
        hold = StockHold(**values)
        current_domain.repository_for(StockHold).add(hold)

        session = current_session()
        for line in lines:
            decrement_stock(session, line["productId"], int(line["quantity"]))

        logger.info("Stock held", hold_id=str(hold.id), products=len(lines))
        return str(hold.id)

    @handle(ReleaseStockHold)
    def release_stock_hold(self, command):
        """Give the held stock back. Returns False when the hold was no longer active."""
        session = current_session()
        result = session.execute(
            update(stock_holds)
            .where(
                stock_holds.c.id == command.hold_id,
                stock_holds.c.status == ReservationStatus.ACTIVE.value,
            )
            .values(status=command.status, reason=command.reason, resolved_at=db_timestamp())
        )
        if result.rowcount != 1:
            logger.info("Stock hold already resolved", hold_id=command.hold_id, reason=command.reason)
            return False

        lines_data = session.execute(
            select(stock_holds.c.lines_data).where(stock_holds.c.id == command.hold_id)
        ).scalar_one()
        for line in json.loads(lines_data or "[]"):
            restore_stock(session, line["productId"], int(line["quantity"]))

        logger.info("Stock hold released", hold_id=command.hold_id, reason=command.reason, status=command.status)
        return True


def confirm_hold(session: Session, hold_id: str, order_id: str, now: datetime | None = None) -> None:
    """Mark an active, unexpired hold as consumed by ``order_id``.

    Runs inside the caller's unit of work so the order row and the
    confirmation commit together.
    """
    now = db_timestamp(now)
    result = session.execute(
        update(stock_holds)
        .where(
            stock_holds.c.id == hold_id,
            stock_holds.c.status == ReservationStatus.ACTIVE.value,
            stock_holds.c.expires_at > now,
        )
        .values(status=ReservationStatus.CONFIRMED.value, order_id=order_id, resolved_at=now)
    )
    if result.rowcount != 1:
        raise ReservationExpired(hold_id)
