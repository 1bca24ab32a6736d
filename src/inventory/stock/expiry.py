"""Hold expiry: command and handler for giving back stock held by abandoned checkouts.

Triggered periodically by the maintenance loop (or ``manage.py
release-expired``). Finds active holds past their expiry time and processes a
``ReleaseStockHold`` for each, marking them EXPIRED.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ProteanException
from protean.fields import DateTime
from protean.utils.globals import current_domain
from sqlalchemy import select

from inventory.stock.reservation import ReleaseStockHold, ReservationStatus, StockHold, stock_holds
from shared.domain import checkout
from shared.utils.dates import db_timestamp
from shared.utils.db import sql_session

logger = structlog.get_logger(__name__)


@checkout.command(part_of="StockHold")
class ReleaseExpiredHolds:
    """Release every active hold whose expiry has passed."""

    as_of = DateTime()  # Optional: defaults to now


def expired_hold_ids(as_of: datetime) -> list[str]:
    cutoff = db_timestamp(as_of)
    with sql_session() as session:
        return list(
            session.execute(
                select(stock_holds.c.id).where(
                    stock_holds.c.status == ReservationStatus.ACTIVE.value,
                    stock_holds.c.expires_at <= cutoff,
                )
            ).scalars()
        )


@checkout.command_handler(part_of=StockHold)
class ReleaseExpiredHoldsHandler:
    @handle(ReleaseExpiredHolds)
    def release_expired_holds(self, command):
        as_of = command.as_of or datetime.now(UTC)
        expired = expired_hold_ids(as_of)
        if not expired:
            return 0

        released = 0
        for hold_id in expired:
            try:
                if current_domain.process(
                    ReleaseStockHold(
                        hold_id=hold_id,
                        reason="expired",
                        status=ReservationStatus.EXPIRED.value,
                    ),
                    asynchronous=False,
                ):
                    released += 1
            except ProteanException as exc:
                logger.error("Failed to release expired hold", hold_id=hold_id, error=str(exc))

        if released:
            logger.info("Expired stock holds released", count=released)
        return released
