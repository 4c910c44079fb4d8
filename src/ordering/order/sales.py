"""Sold counters — reports paid quantities back to the catalogue.

Runs off the request path as an event handler. Catalogue failures are
retried, then logged and dropped: a missed counter is cheaper than a failed
payment confirmation.
"""

import json

import structlog
from protean import handle

from ordering.catalogue import get_catalogue
from ordering.catalogue.port import CatalogueError
from ordering.domain import ordering
from ordering.order.events import PaymentCompleted
from ordering.order.order import Order
from ordering.utils.side_effects import run_best_effort

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=Order)
class SoldCounterUpdater:
    @handle(PaymentCompleted)
    def increment_sold_counters(self, event: PaymentCompleted) -> None:
        catalogue = get_catalogue()
        lines = json.loads(event.items) if isinstance(event.items, str) else (event.items or [])

        failed = 0
        for line in lines:
            ok = run_best_effort(
                catalogue.increment_sold,
                line["product_id"],
                line["quantity"],
                description="Incrementing sold counter",
                retry_on=(CatalogueError,),
                order_id=str(event.order_id),
                product_id=line["product_id"],
            )
            failed += 0 if ok else 1

        logger.info(
            "Sold counters updated",
            order_id=str(event.order_id),
            products=len(lines),
            failed=failed,
        )
