"""Order fulfillment — status updates from sellers and delivery partners."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    """Advance one item, a seller's items, or the whole order one step."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    notes = String(max_length=500)
    item_id = Identifier()
    seller_id = Identifier()


@ordering.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous_status = order.status
        changed = order.update_status(
            command.status,
            notes=command.notes,
            item_id=command.item_id,
            seller_id=command.seller_id,
        )
        repo.add(order)

        if changed:
            logger.info(
                "Order status updated",
                order_id=str(order.order_id),
                item_id=command.item_id,
                requested=command.status,
                previous_status=previous_status,
                status=order.status,
            )
        else:
            logger.debug("Status update was a no-op", order_id=str(order.order_id), requested=command.status)
        return order
