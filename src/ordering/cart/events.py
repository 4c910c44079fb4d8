"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Cart")
class CartItemAdded:
    """Units of a product were added to the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    pack_size_id = Identifier()
    quantity = Integer(required=True)
    final_total = Float()


@ordering.event(part_of="Cart")
class CartItemQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    final_total = Float()


@ordering.event(part_of="Cart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier()
    final_total = Float()


@ordering.event(part_of="Cart")
class CartCouponApplied:
    """A coupon was applied to the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_applied = Float()


@ordering.event(part_of="Cart")
class CartCouponRemoved:
    """The applied coupon was removed, by the customer or because it lapsed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    reason = String()


@ordering.event(part_of="Cart")
class CartComboApplied:
    """A combo's products were added to the cart as tagged lines."""

    __version__ = 1

    cart_id = Identifier(required=True)
    combo_id = Identifier(required=True)
    multiplier = Integer()
    discount_applied = Float()


@ordering.event(part_of="Cart")
class CartComboRemoved:
    """A combo and its tagged lines were removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    combo_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCleared:
    """The cart was emptied, typically after an order was placed from it."""

    __version__ = 1

    cart_id = Identifier(required=True)
