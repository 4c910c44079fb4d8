"""Customer-facing order timeline, built from the status history."""

from ordering.order.status import FORWARD_SEQUENCE, OrderStatus

STEPS = [
    (OrderStatus.CONFIRMED.value, "Order Confirmed"),
    (OrderStatus.PROCESSING.value, "Processing"),
    (OrderStatus.SHIPPED.value, "Shipped"),
    (OrderStatus.DELIVERED.value, "Delivered"),
]


def order_timeline(order, item_id=None) -> dict:
    """Four-step progress view for the whole order or a single item.

    A step counts as completed once the history has reached it or any later
    forward status, so steps skipped by the derived order status still show.
    """
    if item_id:
        item = order.get_item(item_id)
        history, current = item.history(), item.item_status
    else:
        history, current = order.history(), order.status

    reached = max(
        (FORWARD_SEQUENCE.index(h["status"]) for h in history if h["status"] in FORWARD_SEQUENCE),
        default=0,
    )

    steps = []
    for status, label in STEPS:
        entries = [h for h in history if h["status"] == status]
        steps.append(
            {
                "status": status,
                "label": label,
                "completed": FORWARD_SEQUENCE.index(status) <= reached,
                "timestamp": entries[0]["timestamp"] if entries else None,
                "notes": entries[-1]["notes"] if entries else None,
            }
        )

    return {
        "order_id": str(order.order_id),
        "item_id": str(item_id) if item_id else None,
        "current_status": current,
        "cancelled": current == OrderStatus.CANCELLED.value,
        "returned": current == OrderStatus.RETURNED.value,
        "estimated_delivery_date": (
            order.estimated_delivery_date.isoformat() if order.estimated_delivery_date else None
        ),
        "steps": steps,
    }
