"""Cart item management — commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.management import load_cart
from ordering.catalogue import get_catalogue
from ordering.domain import ordering


def fetch_product(product_id):
    product = get_catalogue().get_product(product_id)
    if product is None:
        raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})
    return product


@ordering.command(part_of="Cart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    pack_size_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Cart")
class RemoveFromCart:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = fetch_product(command.product_id)
        cart = load_cart(command.user_id, create=True)
        cart.add_item(product, command.quantity, pack_size_id=command.pack_size_id)
        current_domain.repository_for(Cart).add(cart)
        return cart

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = load_cart(command.user_id)
        cart.update_item_quantity(command.item_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)
        return cart

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = load_cart(command.user_id)
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)
        return cart
