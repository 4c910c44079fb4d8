"""Order aggregate (CQRS) — a frozen snapshot of a priced cart plus its lifecycle.

Prices, discounts and the delivery promise are captured once at creation and
never recomputed. After that only statuses move: each item travels its own
path through ``ordering.order.status`` so sellers can fulfil independently,
and the order status is re-derived from the items after every change.

Histories are stored as JSON lists of ``{status, timestamp, notes}`` on the
order and on each item. Timeline fields are stamped the first time the order
reaches the matching status and never overwritten.
"""

import json
import random
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderItemStatusChanged,
    OrderPlaced,
    OrderReturned,
    OrderStatusChanged,
    PaymentCompleted,
    PaymentFailed,
    PaymentIntentCreated,
    PaymentRefunded,
)
from ordering.order.status import (
    CLOSED,
    FINALIZED,
    ONLINE_METHODS,
    TIMELINE_FIELDS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    check_item_transition,
    derive_order_status,
    normalize_status,
)
from ordering.pricing.engine import DiscountType
from ordering.pricing.rules import ProductType


def generate_order_id(now=None):
    """Human-readable order id: ``ORD-<epoch ms>-<4 random digits>``."""
    now = now or datetime.now(UTC)
    return f"ORD-{int(now.timestamp() * 1000)}-{random.randint(1000, 9999)}"


def _history_entry(status, notes, at):
    return {"status": status, "timestamp": at.isoformat(), "notes": notes or ""}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order goes, copied from the customer's selected address."""

    full_name = String(required=True, max_length=150)
    phone = String(required=True, max_length=20)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")


@ordering.value_object(part_of="Order")
class PriceSummary:
    """The cart's price breakdown at the moment the order was placed."""

    subtotal = Float(default=0.0)
    item_discount = Float(default=0.0)
    combo_discount = Float(default=0.0)
    coupon_discount = Float(default=0.0)
    subtotal_after_discounts = Float(default=0.0)
    surcharge = Float(default=0.0)
    tax = Float(default=0.0)
    final_total = Float(default=0.0)
    currency = String(max_length=3, default="INR")


@ordering.value_object(part_of="Order")
class CouponSnapshot:
    code = String(required=True, max_length=50)
    discount_type = String(choices=DiscountType)
    discount_value = Float()
    discount_applied = Float(default=0.0)


_PAYMENT_FIELDS = (
    "method",
    "status",
    "intent_id",
    "client_secret",
    "transaction_id",
    "paid_at",
    "failure_reason",
    "refund_id",
    "refund_amount",
    "refunded_at",
)


@ordering.value_object(part_of="Order")
class PaymentInfo:
    method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    intent_id = String(max_length=255)
    client_secret = String(max_length=255)
    transaction_id = String(max_length=255)
    paid_at = DateTime()
    failure_reason = String(max_length=500)
    refund_id = String(max_length=255)
    refund_amount = Float()
    refunded_at = DateTime()

    def replace(self, **changes):
        values = {name: getattr(self, name) for name in _PAYMENT_FIELDS}
        values.update(changes)
        return PaymentInfo(**values)


_TIMELINE_FIELDS = (
    "order_created",
    "payment_completed",
    "order_confirmed",
    "processing_started",
    "order_shipped",
    "order_delivered",
    "order_cancelled",
    "order_returned",
)


@ordering.value_object(part_of="Order")
class Timeline:
    order_created = DateTime()
    payment_completed = DateTime()
    order_confirmed = DateTime()
    processing_started = DateTime()
    order_shipped = DateTime()
    order_delivered = DateTime()
    order_cancelled = DateTime()
    order_returned = DateTime()

    def stamp(self, field_name, at):
        """Copy with ``field_name`` set, unless it is already set."""
        if getattr(self, field_name) is not None:
            return self
        values = {name: getattr(self, name) for name in _TIMELINE_FIELDS}
        values[field_name] = at
        return Timeline(**values)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """One purchased line, priced at order time and tracked on its own."""

    product_id = Identifier(required=True)
    title = String(max_length=255)
    pack_size_id = Identifier()
    pack_label = String(max_length=100)
    combo_id = Identifier()
    seller_id = Identifier()
    product_type = String(choices=ProductType, default=ProductType.GROCERY.value)
    restaurant_name = String(max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    discounted_unit_price = Float(min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(default=0.0)
    line_discounted_total = Float(default=0.0)
    estimated_delivery = String(max_length=50)
    estimated_delivery_date = DateTime()
    item_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = Text()  # JSON list of {status, timestamp, notes}
    delivered_at = DateTime()
    cancelled_at = DateTime()
    returned_at = DateTime()

    def history(self):
        return json.loads(self.status_history) if self.status_history else []

    def record_status(self, status, notes, at):
        entries = self.history()
        entries.append(_history_entry(status, notes, at))
        self.status_history = json.dumps(entries)
        self.item_status = status

        if status == OrderStatus.DELIVERED.value:
            self.delivered_at = at
        elif status == OrderStatus.CANCELLED.value:
            self.cancelled_at = at
        elif status == OrderStatus.RETURNED.value:
            self.returned_at = at


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_id = Identifier(identifier=True)
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = Text()  # JSON list of {status, timestamp, notes}
    shipping_address = ValueObject(ShippingAddress)
    price_summary = ValueObject(PriceSummary)
    applied_coupon = ValueObject(CouponSnapshot)
    applied_combos = Text()  # JSON list of {combo_id, title, discount_applied}
    payment_info = ValueObject(PaymentInfo)
    timeline = ValueObject(Timeline)
    estimated_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    cancellation_reason = String(max_length=500)
    return_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        items,
        shipping_address,
        price_summary,
        payment_method,
        applied_coupon=None,
        applied_combos=None,
        order_id=None,
        now=None,
    ):
        """Create a pending order from already-snapshotted items and prices."""
        now = now or datetime.now(UTC)
        if not items:
            raise ValidationError({"items": ["An order must contain at least one item"]})
        if payment_method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method '{payment_method}'"]})

        for item in items:
            item.item_status = OrderStatus.PENDING.value
            item.status_history = json.dumps([_history_entry(OrderStatus.PENDING.value, "Order placed", now)])

        delivery_dates = [i.estimated_delivery_date for i in items if i.estimated_delivery_date]

        order = cls(
            order_id=order_id or generate_order_id(now),
            user_id=user_id,
            items=items,
            status=OrderStatus.PENDING.value,
            status_history=json.dumps(
                [_history_entry(OrderStatus.PENDING.value, "Order created successfully", now)]
            ),
            shipping_address=shipping_address,
            price_summary=price_summary,
            applied_coupon=applied_coupon,
            applied_combos=json.dumps(applied_combos or []),
            payment_info=PaymentInfo(method=payment_method, status=PaymentStatus.PENDING.value),
            timeline=Timeline(order_created=now),
            estimated_delivery_date=max(delivery_dates) if delivery_dates else None,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.order_id),
                user_id=str(user_id),
                item_count=len(items),
                final_total=price_summary.final_total,
                currency=price_summary.currency,
                payment_method=payment_method,
                estimated_delivery_date=order.estimated_delivery_date,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def history(self):
        return json.loads(self.status_history) if self.status_history else []

    def get_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError({"item_id": [f"Item {item_id} not found in order {self.order_id}"]})
        return item

    @property
    def is_paid(self):
        return self.payment_info is not None and self.payment_info.status == PaymentStatus.COMPLETED.value

    @property
    def is_online_payment(self):
        return self.payment_info is not None and self.payment_info.method in ONLINE_METHODS

    # -------------------------------------------------------------------
    # Internal transitions
    # -------------------------------------------------------------------
    def _move_item(self, item, target, notes, now, allow_return=False):
        previous = item.item_status
        if not check_item_transition(previous, target, allow_return=allow_return):
            return False

        item.record_status(target, notes, now)
        self.raise_(
            OrderItemStatusChanged(
                order_id=str(self.order_id),
                item_id=str(item.id),
                seller_id=str(item.seller_id) if item.seller_id else None,
                previous_status=previous,
                new_status=target,
                notes=notes,
                changed_at=now,
            )
        )
        return True

    def _auto_confirm_pending_items(self, now):
        """Confirm every still-pending item of a paid order. Safe to repeat."""
        if not self.is_paid:
            return False
        changed = False
        for item in self.items:
            if item.item_status == OrderStatus.PENDING.value:
                changed |= self._move_item(item, OrderStatus.CONFIRMED.value, "Auto-confirmed after payment", now)
        return changed

    def _append_history(self, status, notes, now):
        entries = self.history()
        entries.append(_history_entry(status, notes, now))
        self.status_history = json.dumps(entries)

    def _set_status(self, new_status, notes, now):
        previous = self.status
        if new_status == previous:
            return False

        self.status = new_status
        self._append_history(new_status, notes, now)

        timeline_field = TIMELINE_FIELDS.get(new_status)
        if timeline_field:
            self.timeline = self.timeline.stamp(timeline_field, now)

        if new_status == OrderStatus.DELIVERED.value:
            self.actual_delivery_date = now
            self._settle_cash_on_delivery(now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.order_id),
                previous_status=previous,
                new_status=new_status,
                changed_at=now,
            )
        )
        return True

    def _refresh_status(self, notes, now):
        derived = derive_order_status([i.item_status for i in self.items], self.status)
        return self._set_status(derived, notes, now)

    def _settle_cash_on_delivery(self, now):
        if self.payment_info.method != PaymentMethod.COD.value or self.payment_info.status != PaymentStatus.PENDING.value:
            return
        self.payment_info = self.payment_info.replace(status=PaymentStatus.COMPLETED.value, paid_at=now)
        self.timeline = self.timeline.stamp("payment_completed", now)
        self._raise_payment_completed(now)

    def _raise_payment_completed(self, now):
        self.raise_(
            PaymentCompleted(
                order_id=str(self.order_id),
                payment_method=self.payment_info.method,
                transaction_id=self.payment_info.transaction_id,
                amount=self.price_summary.final_total,
                items=json.dumps([{"product_id": str(i.product_id), "quantity": i.quantity} for i in self.items]),
                paid_at=now,
            )
        )

    def _assert_open(self):
        if self.status in CLOSED:
            raise ValidationError({"status": [f"Order is {self.status}; no further updates are allowed"]})

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def update_status(self, status, notes=None, item_id=None, seller_id=None, now=None):
        """Move one item, a seller's items, or every item one step along.

        Returns True when anything changed. Items that are already past
        ``status`` are left alone.
        """
        now = now or datetime.now(UTC)
        target = normalize_status(status)

        self._assert_open()
        if target == OrderStatus.RETURNED.value:
            raise ValidationError({"status": ["Returns must be requested through the return flow"]})
        if all(i.item_status in FINALIZED for i in self.items):
            raise ValidationError({"status": ["All items in this order are already finalized"]})

        if item_id:
            targets = [self.get_item(item_id)]
        elif seller_id:
            targets = [i for i in self.items if str(i.seller_id) == str(seller_id)]
            if not targets:
                raise ObjectNotFoundError({"seller_id": [f"No items from seller {seller_id} in this order"]})
        else:
            targets = self.items

        changed = self._auto_confirm_pending_items(now)
        for item in targets:
            if not item_id and item.item_status in FINALIZED:
                continue
            changed |= self._move_item(item, target, notes, now)

        changed |= self._refresh_status(notes or f"Order {target}", now)
        if changed:
            self.updated_at = now
        return changed

    def cancel(self, reason, now=None):
        """Customer cancellation, allowed until the order starts processing."""
        now = now or datetime.now(UTC)
        if self.status not in {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value}:
            raise ValidationError({"status": [f"Order cannot be cancelled once it is {self.status}"]})

        notes = f"Cancelled by customer: {reason}" if reason else "Cancelled by customer"
        for item in self.items:
            if item.item_status not in FINALIZED:
                self._move_item(item, OrderStatus.CANCELLED.value, notes, now)

        self.cancellation_reason = reason
        self._refresh_status(notes, now)
        self.updated_at = now

        self.raise_(OrderCancelled(order_id=str(self.order_id), reason=reason, cancelled_at=now))

    def request_return(self, reason, item_ids=None, now=None):
        """Return delivered items; all delivered items when ``item_ids`` is empty."""
        now = now or datetime.now(UTC)
        if self.status != OrderStatus.DELIVERED.value:
            raise ValidationError({"status": ["Only delivered orders can be returned"]})

        if item_ids:
            items = [self.get_item(item_id) for item_id in item_ids]
        else:
            items = [i for i in self.items if i.item_status == OrderStatus.DELIVERED.value]

        notes = f"Returned: {reason}" if reason else "Returned"
        for item in items:
            self._move_item(item, OrderStatus.RETURNED.value, notes, now, allow_return=True)

        self.return_reason = reason
        self._refresh_status(notes, now)
        self.updated_at = now

        self.raise_(
            OrderReturned(
                order_id=str(self.order_id),
                item_ids=json.dumps([str(i.id) for i in items]),
                reason=reason,
                returned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def attach_payment_intent(self, intent_id, client_secret, now=None):
        if not self.is_online_payment:
            raise ValidationError({"payment_method": ["Online payment is not applicable for this order"]})
        if self.payment_info.status in {PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value}:
            raise ValidationError({"payment": [f"Payment is already {self.payment_info.status}"]})

        self.payment_info = self.payment_info.replace(
            intent_id=intent_id,
            client_secret=client_secret,
            status=PaymentStatus.PENDING.value,
            failure_reason=None,
        )
        self.updated_at = now or datetime.now(UTC)

        self.raise_(
            PaymentIntentCreated(
                order_id=str(self.order_id),
                intent_id=intent_id,
                amount=self.price_summary.final_total,
                currency=self.price_summary.currency,
            )
        )

    def confirm_payment(self, transaction_id=None, now=None):
        """Record a successful payment. Returns False if it was already recorded."""
        now = now or datetime.now(UTC)
        if self.payment_info.status == PaymentStatus.COMPLETED.value:
            return False
        if self.payment_info.status == PaymentStatus.REFUNDED.value:
            raise ValidationError({"payment": ["Payment has already been refunded"]})

        self.payment_info = self.payment_info.replace(
            status=PaymentStatus.COMPLETED.value,
            transaction_id=transaction_id or self.payment_info.intent_id,
            paid_at=now,
            failure_reason=None,
        )
        self.timeline = self.timeline.stamp("payment_completed", now)
        self.updated_at = now

        # A closed order keeps its status; the captured payment stays refundable
        if self.status in CLOSED:
            self._append_history(self.status, "Payment received after the order was closed", now)
            return True

        self._auto_confirm_pending_items(now)
        self._refresh_status("Order confirmed after successful payment", now)

        self._raise_payment_completed(now)
        return True

    def record_payment_failure(self, reason, now=None):
        """Record a failed attempt. A completed or refunded payment is left untouched."""
        now = now or datetime.now(UTC)
        if self.payment_info.status in {PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value}:
            return False

        self.payment_info = self.payment_info.replace(status=PaymentStatus.FAILED.value, failure_reason=reason)
        self.updated_at = now

        self.raise_(PaymentFailed(order_id=str(self.order_id), reason=reason, failed_at=now))
        return True

    def record_refund(self, amount, refund_id=None, reason=None, now=None):
        """Mark the payment refunded and close the order.

        A returned order keeps its status and gets a history note; any other
        order is cancelled, along with every item not yet delivered.
        """
        now = now or datetime.now(UTC)
        if self.payment_info.status == PaymentStatus.REFUNDED.value:
            raise ValidationError({"payment": ["Payment has already been refunded"]})
        if self.payment_info.status != PaymentStatus.COMPLETED.value:
            raise ValidationError({"payment": ["Only completed payments can be refunded"]})

        self.payment_info = self.payment_info.replace(
            status=PaymentStatus.REFUNDED.value,
            refund_id=refund_id,
            refund_amount=amount,
            refunded_at=now,
        )

        if self.status == OrderStatus.RETURNED.value:
            self._append_history(PaymentStatus.REFUNDED.value, f"Refunded {amount:g}: {reason or 'return'}", now)
        else:
            notes = f"Refund processed: {reason}" if reason else "Refund processed: order cancelled"
            for item in self.items:
                if item.item_status not in FINALIZED:
                    self._move_item(item, OrderStatus.CANCELLED.value, notes, now)
            self._set_status(OrderStatus.CANCELLED.value, notes, now)
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                order_id=str(self.order_id),
                refund_id=refund_id,
                amount=amount,
                reason=reason,
                refunded_at=now,
            )
        )
