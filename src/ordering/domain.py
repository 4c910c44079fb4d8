"""Ordering bounded context — cart pricing, order lifecycle and payment reconciliation.

Carts and orders are CQRS aggregates. The cart recomputes its totals through
the pricing engine after every mutation; orders are built from a priced cart
and then driven item by item through the fulfillment state machine.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
