"""Order creation — turns the user's priced cart into an Order.

The order is saved before the cart is emptied. If emptying the cart fails the
order stands and the failure is logged; placing the same cart again would
create a second order.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.management import load_cart
from ordering.domain import ordering
from ordering.order.order import CouponSnapshot, Order, OrderItem, PriceSummary, ShippingAddress
from ordering.order.status import PaymentMethod
from ordering.pricing.rules import get_pricing_rules

logger = structlog.get_logger(__name__)


class OrderFactory:
    """Snapshots a cart's lines and price breakdown into a new pending Order."""

    def __init__(self, rules=None):
        self.rules = rules or get_pricing_rules()

    def build(self, cart, shipping_address, payment_method, now=None):
        now = now or datetime.now(UTC)

        if not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})
        if shipping_address is None:
            raise ValidationError({"shipping_address": ["Please select a delivery address"]})
        if payment_method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method '{payment_method}'"]})

        breakdown = cart.recalculate(self.rules)

        coupon = None
        if cart.applied_coupon is not None:
            coupon = CouponSnapshot(
                code=cart.applied_coupon.code,
                discount_type=cart.applied_coupon.discount_type,
                discount_value=cart.applied_coupon.discount_value,
                discount_applied=breakdown.coupon_discount,
            )

        return Order.place(
            user_id=cart.user_id,
            items=[self._snapshot_item(line, now) for line in cart.items],
            shipping_address=shipping_address,
            price_summary=PriceSummary(
                subtotal=breakdown.total_price,
                item_discount=breakdown.total_savings,
                combo_discount=breakdown.combo_discount,
                coupon_discount=breakdown.coupon_discount,
                subtotal_after_discounts=breakdown.discounted_subtotal,
                surcharge=breakdown.surcharge,
                tax=breakdown.tax,
                final_total=breakdown.final_total,
                currency=self.rules.currency,
            ),
            payment_method=payment_method,
            applied_coupon=coupon,
            applied_combos=[
                {"combo_id": str(c.combo_id), "title": c.title, "discount_applied": c.discount_applied}
                for c in cart.applied_combos
            ],
            now=now,
        )

    def _snapshot_item(self, line, now):
        rule = self.rules.rule_for(line.product_type)
        return OrderItem(
            product_id=line.product_id,
            title=line.title,
            pack_size_id=line.pack_size_id,
            pack_label=line.pack_label,
            combo_id=line.combo_id,
            seller_id=line.seller_id,
            product_type=line.product_type,
            restaurant_name=line.restaurant_name,
            unit_price=line.unit_price,
            discounted_unit_price=line.discounted_unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
            line_discounted_total=line.line_discounted_total,
            estimated_delivery=rule.delivery_label,
            estimated_delivery_date=now + rule.delivery_window,
        )


def parse_shipping_address(raw):
    if not raw:
        return None
    data = json.loads(raw) if isinstance(raw, str) else raw
    return ShippingAddress(**data)


@ordering.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON address
    payment_method = String(required=True, choices=PaymentMethod)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart = load_cart(command.user_id)
        order = OrderFactory().build(
            cart,
            parse_shipping_address(command.shipping_address),
            command.payment_method,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.order_id),
            user_id=str(order.user_id),
            item_count=len(order.items),
            final_total=order.price_summary.final_total,
            payment_method=order.payment_info.method,
        )

        try:
            cart.clear()
            current_domain.repository_for(Cart).add(cart)
        except Exception:
            logger.exception("Failed to clear cart after placing order", order_id=str(order.order_id))

        return order
