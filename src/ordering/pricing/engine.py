"""Cart pricing engine.

Pure functions from line items and applied offers to a price breakdown. No
I/O and no mutation of the inputs: calling ``compute_cart_totals`` twice on
the same state yields an identical ``Breakdown``.

Order of operations:
    1. Item totals: list price, item-discounted price and savings.
    2. Surcharge per line from its product type's rule.
    3. Combo discount per applied combo over the lines tagged with it.
    4. Coupon discount over the whole item-discounted total. The coupon base
       is NOT reduced by combo discounts; both are subtracted side by side.
    5. Tax on (item-discounted total - combo - coupon), floored at zero.
    6. Final total = taxable base + tax + surcharge.

Money is rounded half up to whole units wherever a percentage is applied.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from ordering.pricing.rules import PricingRules, get_pricing_rules


class DiscountType(Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class Breakdown:
    total_items: int = 0
    total_price: float = 0.0
    total_discounted_price: float = 0.0
    total_savings: float = 0.0
    surcharge: float = 0.0
    combo_discount: float = 0.0
    combo_discounts: tuple[tuple[str, float], ...] = ()
    coupon_discount: float = 0.0
    discounted_subtotal: float = 0.0
    tax: float = 0.0
    final_total: float = 0.0

    def discount_for_combo(self, combo_id) -> float:
        return dict(self.combo_discounts).get(str(combo_id), 0.0)


EMPTY_BREAKDOWN = Breakdown()


def round_half_up(value) -> float:
    """Round to the nearest whole unit, ties away from zero."""
    return float(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _money(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def line_totals(unit_price, discounted_unit_price, quantity) -> tuple[float, float]:
    """(line total at list price, line total at item-discounted price)."""
    effective = discounted_unit_price if discounted_unit_price is not None else unit_price
    return _money(unit_price * quantity), _money(effective * quantity)


def coupon_discount_for(discount_type, discount_value, base, max_discount=None) -> float:
    """Discount a coupon grants on ``base``.

    Flat coupons are capped at the base. Percentage coupons are rounded half up
    and capped at ``max_discount`` when one is set.
    """
    if base <= 0:
        return 0.0

    if discount_type == DiscountType.PERCENTAGE.value:
        discount = round_half_up(base * discount_value / 100)
        if max_discount:
            discount = min(discount, max_discount)
    else:
        discount = min(discount_value, base)

    return _money(max(discount, 0.0))


def _coupon_is_resolvable(applied_coupon) -> bool:
    return applied_coupon is not None and bool(getattr(applied_coupon, "coupon_id", None))


def compute_cart_totals(
    items: Iterable,
    applied_coupon=None,
    applied_combos: Iterable = (),
    rules: PricingRules | None = None,
) -> Breakdown:
    """Compute the full price breakdown of a cart.

    ``items`` expose ``unit_price``, ``discounted_unit_price``, ``quantity``,
    ``combo_id`` and ``product_type``. ``applied_coupon`` exposes
    ``coupon_id``, ``discount_type``, ``discount_value`` and ``max_discount``;
    a coupon without a ``coupon_id`` is ignored. ``applied_combos`` expose
    ``combo_id`` and ``discount_percentage``.
    """
    rules = rules or get_pricing_rules()
    items = list(items)

    if not items:
        return EMPTY_BREAKDOWN

    total_items = 0
    total_price = 0.0
    total_discounted_price = 0.0
    surcharge = 0.0
    for item in items:
        line_total, line_discounted_total = line_totals(item.unit_price, item.discounted_unit_price, item.quantity)
        total_items += item.quantity
        total_price += line_total
        total_discounted_price += line_discounted_total
        surcharge += rules.rule_for(item.product_type).surcharge_per_unit * item.quantity

    total_price = _money(total_price)
    total_discounted_price = _money(total_discounted_price)

    combo_discounts = []
    for combo in applied_combos:
        tagged_total = sum(
            line_totals(i.unit_price, i.discounted_unit_price, i.quantity)[1]
            for i in items
            if i.combo_id and str(i.combo_id) == str(combo.combo_id)
        )
        combo_discounts.append((str(combo.combo_id), round_half_up(tagged_total * (combo.discount_percentage or 0) / 100)))
    combo_discount = _money(sum(amount for _, amount in combo_discounts))

    coupon_discount = 0.0
    if _coupon_is_resolvable(applied_coupon):
        coupon_discount = coupon_discount_for(
            applied_coupon.discount_type,
            applied_coupon.discount_value,
            total_discounted_price,
            applied_coupon.max_discount,
        )

    discounted_subtotal = _money(max(total_discounted_price - combo_discount - coupon_discount, 0.0))
    tax = round_half_up(discounted_subtotal * rules.tax_rate / 100)
    surcharge = _money(surcharge)

    return Breakdown(
        total_items=total_items,
        total_price=total_price,
        total_discounted_price=total_discounted_price,
        total_savings=_money(total_price - total_discounted_price),
        surcharge=surcharge,
        combo_discount=combo_discount,
        combo_discounts=tuple(combo_discounts),
        coupon_discount=coupon_discount,
        discounted_subtotal=discounted_subtotal,
        tax=tax,
        final_total=_money(discounted_subtotal + tax + surcharge),
    )
