import pytest
from ordering.cart.cart import Cart
from ordering.catalogue import set_catalogue
from ordering.catalogue.fake_adapter import InMemoryCatalogue
from ordering.catalogue.port import (
    ComboComponent,
    ComboInfo,
    DeliveryDetails,
    GroceryDetails,
    PackSize,
    ProductInfo,
)
from ordering.order.creation import OrderFactory
from ordering.order.order import ShippingAddress
from ordering.promotions import set_coupons
from ordering.promotions.fake_adapter import InMemoryCoupons
from ordering.promotions.port import CouponTerms
from payments.gateway import set_gateway
from payments.gateway.fake_adapter import FakeGateway
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
MILK = ProductInfo(
    product_id="prod-milk",
    title="Toned Milk 1L",
    price=100.0,
    stock=10,
    seller_id="seller-fresh",
    details=GroceryDetails(brand="Nandini"),
)

BREAD = ProductInfo(
    product_id="prod-bread",
    title="Whole Wheat Bread",
    price=40.0,
    stock=3,
    seller_id="seller-bakery",
    details=GroceryDetails(brand="Modern"),
)

RICE = ProductInfo(
    product_id="prod-rice",
    title="Basmati Rice",
    price=100.0,
    stock=0,
    seller_id="seller-fresh",
    details=GroceryDetails(
        brand="India Gate",
        pack_sizes=(
            PackSize(pack_size_id="1kg", label="1 kg", price=100.0, discounted_price=90.0, stock=10),
            PackSize(pack_size_id="5kg", label="5 kg", price=450.0, stock=2),
        ),
    ),
)

BIRYANI = ProductInfo(
    product_id="prod-biryani",
    title="Chicken Biryani",
    price=250.0,
    discounted_price=200.0,
    stock=20,
    seller_id="seller-paradise",
    details=DeliveryDetails(restaurant_name="Paradise", is_veg=False),
)

BREAKFAST_COMBO = ComboInfo(
    combo_id="combo-breakfast",
    title="Breakfast Basics",
    discount_percentage=10.0,
    components=(
        ComboComponent(product_id="prod-milk", quantity=1),
        ComboComponent(product_id="prod-bread", quantity=1),
    ),
)


@pytest.fixture()
def catalogue():
    catalogue = InMemoryCatalogue()
    for product in (MILK, BREAD, RICE, BIRYANI):
        catalogue.add_product(product)
    catalogue.add_combo(BREAKFAST_COMBO)
    set_catalogue(catalogue)
    return catalogue


@pytest.fixture()
def milk():
    return MILK


@pytest.fixture()
def bread():
    return BREAD


@pytest.fixture()
def rice():
    return RICE


@pytest.fixture()
def biryani():
    return BIRYANI


@pytest.fixture()
def breakfast_combo():
    return BREAKFAST_COMBO


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
@pytest.fixture()
def coupons():
    coupons = InMemoryCoupons()
    coupons.add_coupon(
        CouponTerms(coupon_id="cpn-flat30", code="FLAT30", discount_type="flat", discount_value=30.0)
    )
    coupons.add_coupon(
        CouponTerms(
            coupon_id="cpn-save10",
            code="SAVE10",
            discount_type="percentage",
            discount_value=10.0,
            min_order_value=200.0,
            max_discount=50.0,
        )
    )
    set_coupons(coupons)
    return coupons


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@pytest.fixture()
def address():
    return {
        "full_name": "Asha Rao",
        "phone": "9800000000",
        "line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
    }


@pytest.fixture()
def shipping_address(address):
    return ShippingAddress(**address)


@pytest.fixture()
def build_order(shipping_address):
    """Factory for orders built from a freshly priced cart.

    ``lines`` is a list of ``(product, quantity)`` pairs.
    """

    def _build(lines=None, payment_method="cod", user_id="user-001", coupon=None):
        cart = Cart.create(user_id=user_id)
        for product, quantity in lines or [(MILK, 2), (BIRYANI, 1)]:
            cart.add_item(product, quantity)
        if coupon is not None:
            cart.apply_coupon(coupon)

        order = OrderFactory().build(cart, shipping_address, payment_method)
        order._events.clear()
        return order

    return _build
