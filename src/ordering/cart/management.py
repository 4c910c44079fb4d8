"""Cart management — loading, clearing and the lapsed-coupon check.

Carts are keyed by user and created lazily: handlers that mutate a cart call
``load_cart(user_id, create=True)`` and persist whatever they get back.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.domain import ordering
from ordering.promotions import get_coupons

logger = structlog.get_logger(__name__)


def refresh_coupon(cart):
    """Strip the applied coupon if the coupon source no longer knows it."""
    if cart.applied_coupon is None:
        return
    if get_coupons().get_coupon(cart.applied_coupon.coupon_id) is None:
        logger.info(
            "Stripping coupon that no longer resolves",
            cart_id=str(cart.user_id),
            coupon_code=cart.applied_coupon.code,
        )
        cart.strip_coupon()


def load_cart(user_id, create=False):
    """Fetch the user's cart. With ``create``, a missing cart is started empty."""
    try:
        cart = current_domain.repository_for(Cart).get(user_id)
    except ObjectNotFoundError:
        if not create:
            raise
        return Cart.create(user_id=user_id)

    refresh_coupon(cart)
    return cart


@ordering.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        cart = load_cart(command.user_id)
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
        return cart
