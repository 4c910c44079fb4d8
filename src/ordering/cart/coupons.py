"""Cart coupon application — commands and handler.

A single coupon per cart. Applying one records a redemption with the coupon
source after the cart is saved; removing it does not give the redemption
back.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.management import load_cart
from ordering.domain import ordering
from ordering.promotions import get_coupons
from ordering.promotions.port import PromotionsError
from ordering.utils.side_effects import run_best_effort

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Cart")
class ApplyCoupon:
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@ordering.command(part_of="Cart")
class RemoveCoupon:
    user_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCoupon)
    def apply_coupon(self, command):
        cart = load_cart(command.user_id)

        coupons = get_coupons()
        coupon = coupons.find_by_code(command.code.strip().upper())
        if coupon is None:
            raise ObjectNotFoundError({"code": ["Invalid coupon code"]})

        cart.apply_coupon(coupon)
        current_domain.repository_for(Cart).add(cart)

        run_best_effort(
            coupons.record_usage,
            coupon.coupon_id,
            str(cart.user_id),
            description="Recording coupon usage",
            retry_on=(PromotionsError,),
            coupon_id=coupon.coupon_id,
            user_id=str(cart.user_id),
        )

        logger.info(
            "Coupon applied",
            cart_id=str(cart.user_id),
            coupon_code=coupon.code,
            discount=cart.coupon_discount,
        )
        return cart

    @handle(RemoveCoupon)
    def remove_coupon(self, command):
        cart = load_cart(command.user_id)
        cart.remove_coupon()
        current_domain.repository_for(Cart).add(cart)
        return cart
