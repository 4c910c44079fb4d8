"""Order item state machine and aggregate status derivation.

Item level:
    pending → confirmed → processing → shipped → delivered
    {pending, confirmed, processing, shipped} → cancelled
    delivered → returned   (return flow only)

Forward moves go exactly one step at a time. Asking for a state the item has
already passed is a no-op, not an error. Cancelled and returned are final.

The order's own status is never set directly; it is derived from its items
by ``derive_order_status`` and never moves backward along the forward path.
"""

from enum import Enum

from protean.exceptions import ValidationError

from ordering.errors import InvalidTransitionError


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(Enum):
    COD = "cod"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


ONLINE_METHODS = {PaymentMethod.CARD.value, PaymentMethod.UPI.value, PaymentMethod.NETBANKING.value}

FORWARD_SEQUENCE = [
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
]

CANCELLABLE = {
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
}

CLOSED = {OrderStatus.CANCELLED.value, OrderStatus.RETURNED.value}

FINALIZED = CLOSED | {OrderStatus.DELIVERED.value}

# Timeline field stamped the first time the order enters a status
TIMELINE_FIELDS = {
    OrderStatus.CONFIRMED.value: "order_confirmed",
    OrderStatus.PROCESSING.value: "processing_started",
    OrderStatus.SHIPPED.value: "order_shipped",
    OrderStatus.DELIVERED.value: "order_delivered",
    OrderStatus.CANCELLED.value: "order_cancelled",
    OrderStatus.RETURNED.value: "order_returned",
}

_ALIASES = {
    "under progress": OrderStatus.PROCESSING.value,
    "under_progress": OrderStatus.PROCESSING.value,
}


def normalize_status(value) -> str:
    """Lower-case a requested status and map wire aliases onto the canonical name."""
    status = str(value or "").strip().lower()
    status = _ALIASES.get(status, status)
    if status not in {s.value for s in OrderStatus}:
        raise ValidationError({"status": [f"Unknown status '{value}'"]})
    return status


def check_item_transition(current, target, allow_return=False) -> bool:
    """Whether an item in ``current`` should move to ``target``.

    Returns False when the request is a no-op (same or earlier state) and
    raises ``InvalidTransitionError`` when it is illegal.
    """
    if target == current:
        return False

    if current in CLOSED:
        raise InvalidTransitionError(current, target)

    if target == OrderStatus.CANCELLED.value:
        if current not in CANCELLABLE:
            raise InvalidTransitionError(current, target)
        return True

    if target == OrderStatus.RETURNED.value:
        if not allow_return or current != OrderStatus.DELIVERED.value:
            raise InvalidTransitionError(current, target)
        return True

    current_index = FORWARD_SEQUENCE.index(current)
    target_index = FORWARD_SEQUENCE.index(target)

    if target_index < current_index:
        return False
    if target_index > current_index + 1:
        raise InvalidTransitionError(current, target, required_step=FORWARD_SEQUENCE[current_index + 1])
    return True


def derive_order_status(item_statuses, current=None) -> str:
    """Aggregate status of an order from the statuses of its items.

    - every item cancelled → cancelled
    - every item cancelled or returned (some returned) → returned
    - every remaining item delivered → delivered
    - otherwise the least advanced remaining item, but at least processing
      once any item has reached processing or beyond
    The result never falls behind ``current`` on the forward path.
    """
    statuses = list(item_statuses)
    if not statuses:
        return current or OrderStatus.PENDING.value

    if all(s == OrderStatus.CANCELLED.value for s in statuses):
        return OrderStatus.CANCELLED.value

    active = [s for s in statuses if s not in CLOSED]
    if not active:
        return OrderStatus.RETURNED.value

    if all(s == OrderStatus.DELIVERED.value for s in active):
        derived = OrderStatus.DELIVERED.value
    else:
        derived = FORWARD_SEQUENCE[min(FORWARD_SEQUENCE.index(s) for s in active)]
        processing_index = FORWARD_SEQUENCE.index(OrderStatus.PROCESSING.value)
        if FORWARD_SEQUENCE.index(derived) < processing_index and any(
            FORWARD_SEQUENCE.index(s) >= processing_index for s in active
        ):
            derived = OrderStatus.PROCESSING.value

    if current in FORWARD_SEQUENCE and FORWARD_SEQUENCE.index(derived) < FORWARD_SEQUENCE.index(current):
        return current
    return derived
