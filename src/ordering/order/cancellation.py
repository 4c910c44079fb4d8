"""Order cancellation and returns — commands and handler."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class ReturnOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    item_ids = Text()  # JSON list; empty means every delivered item


@ordering.command_handler(part_of=Order)
class CancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(command.reason)
        repo.add(order)

        logger.info("Order cancelled", order_id=str(order.order_id), reason=command.reason)
        return order

    @handle(ReturnOrder)
    def return_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        item_ids = json.loads(command.item_ids) if command.item_ids else None
        order.request_return(command.reason, item_ids=item_ids)
        repo.add(order)

        logger.info("Order returned", order_id=str(order.order_id), status=order.status)
        return order
