"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was created from the customer's cart."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    item_count = Integer(required=True)
    final_total = Float(required=True)
    currency = String(max_length=3)
    payment_method = String(required=True)
    estimated_delivery_date = DateTime()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderItemStatusChanged:
    """A single order item moved along the fulfillment state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    seller_id = Identifier()
    previous_status = String(required=True)
    new_status = String(required=True)
    notes = String(max_length=500)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The derived order status changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The customer cancelled the order before it was processed."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderReturned:
    """Delivered items of the order were returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of item ids
    reason = String(max_length=500)
    returned_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentIntentCreated:
    """A payment intent was opened with the gateway for the order total."""

    __version__ = 1

    order_id = Identifier(required=True)
    intent_id = String(required=True, max_length=255)
    amount = Float(required=True)
    currency = String(max_length=3)


@ordering.event(part_of="Order")
class PaymentCompleted:
    """The order was paid, online or on delivery."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_method = String(required=True)
    transaction_id = String(max_length=255)
    amount = Float(required=True)
    items = Text(required=True)  # JSON list of {product_id, quantity}
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    """The gateway reported that the payment attempt failed."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(max_length=500)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentRefunded:
    """Money was returned to the customer through the gateway."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(max_length=255)
    amount = Float(required=True)
    reason = String(max_length=500)
    refunded_at = DateTime(required=True)
