"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.cart.cart import Cart
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def products(milk, bread, rice, biryani):
    return {p.product_id: p for p in (milk, bread, rice, biryani)}


# ---------------------------------------------------------------------------
# Given steps — Cart
# ---------------------------------------------------------------------------
@given("an empty cart", target_fixture="cart")
def empty_cart():
    cart = Cart.create(user_id="user-001")
    cart._events.clear()
    return cart


@given(parsers.cfparse('the cart holds {quantity:d} of "{product_id}"'), target_fixture="cart")
def cart_holds(cart, products, quantity, product_id):
    cart.add_item(products[product_id], quantity)
    cart._events.clear()
    return cart


# ---------------------------------------------------------------------------
# Then steps — shared
# ---------------------------------------------------------------------------
@then("the action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the error mentions "{text}"'))
def error_mentions(error, text):
    messages = [m for msgs in error["exc"].messages.values() for m in msgs]
    assert any(text in m for m in messages), messages
