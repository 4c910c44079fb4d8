"""Combo offers on the cart — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.items import fetch_product
from ordering.cart.management import load_cart
from ordering.catalogue import get_catalogue
from ordering.domain import ordering


@ordering.command(part_of="Cart")
class ApplyCombo:
    user_id = Identifier(required=True)
    combo_id = Identifier(required=True)
    quantity = Integer(default=1, min_value=1)


@ordering.command(part_of="Cart")
class RemoveCombo:
    user_id = Identifier(required=True)
    combo_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class CartComboHandler:
    @handle(ApplyCombo)
    def apply_combo(self, command):
        combo = get_catalogue().get_combo(command.combo_id)
        if combo is None:
            raise ObjectNotFoundError({"combo_id": [f"Combo {command.combo_id} not found"]})

        components = [(component, fetch_product(component.product_id)) for component in combo.components]

        cart = load_cart(command.user_id, create=True)
        cart.apply_combo(combo, components, multiplier=command.quantity or 1)
        current_domain.repository_for(Cart).add(cart)
        return cart

    @handle(RemoveCombo)
    def remove_combo(self, command):
        cart = load_cart(command.user_id)
        cart.remove_combo(command.combo_id)
        current_domain.repository_for(Cart).add(cart)
        return cart
