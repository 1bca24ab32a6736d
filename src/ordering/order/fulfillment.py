"""Order status updates: the only way an order moves through its state machine.

Moving an order to shipped (again) while it still awaits a label asks the
fulfillment coordinator for one, so a repeated update retries a failed label
and never buys a second one. Label issuance runs after the status change has
committed and never fails the update.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.fulfillment.shipping import FulfillmentCoordinator
from ordering.order.order import Order, OrderStatus
from shared.config import Settings
from shared.domain import checkout

logger = structlog.get_logger(__name__)


@checkout.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@checkout.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command: UpdateOrderStatus):
        try:
            target = OrderStatus(command.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {command.status}"]}) from None

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        if order.transition_to(target):
            repo.add(order)
            logger.info("Order status updated", order_id=str(order.id), previous=previous, status=order.status)
        return order.needs_label


def update_order_status(
    settings: Settings,
    order_id: str,
    status: str,
    coordinator: FulfillmentCoordinator | None = None,
) -> Order:
    """Apply a status update, then issue the shipping label if the order awaits one."""
    needs_label = current_domain.process(UpdateOrderStatus(order_id=order_id, status=status), asynchronous=False)
    if needs_label:
        (coordinator or FulfillmentCoordinator(settings)).issue_label(order_id)
    return current_domain.repository_for(Order).get(order_id)
