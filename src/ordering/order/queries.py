"""Read access to orders, scoped by who is asking."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from sqlalchemy import select

from identity.account.account import Account
from ordering.order.order import Order, orders
from shared.exceptions import PermissionDenied
from shared.utils.db import sql_session


def list_orders(actor: Account) -> list[Order]:
    """Clients see their own orders, administrators see all; newest first."""
    query = select(orders.c.id).order_by(orders.c.created_at.desc())
    if not actor.is_admin:
        query = query.where(orders.c.account_id == str(actor.id))
    with sql_session() as session:
        order_ids = session.execute(query).scalars().all()

    repo = current_domain.repository_for(Order)
    return [repo.get(order_id) for order_id in order_ids]


def get_order(actor: Account, order_id: str) -> Order:
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise ObjectNotFoundError({"order": ["Order not found"]}) from None
    if not actor.is_admin and str(order.account_id) != str(actor.id):
        raise PermissionDenied({"order": ["You do not have access to this order"]})
    return order
