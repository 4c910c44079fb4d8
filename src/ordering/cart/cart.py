"""Cart aggregate (CQRS) — one per user, priced after every mutation.

The cart is keyed by the user it belongs to. It holds line items, at most one
applied coupon and any number of applied combos. The total fields are never
written directly: every mutation ends in ``recalculate()``, which runs the
pricing engine over items and offers and copies the breakdown back.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.cart.events import (
    CartCleared,
    CartComboApplied,
    CartComboRemoved,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
)
from ordering.domain import ordering
from ordering.errors import ConflictError, OutOfStockError
from ordering.pricing.engine import Breakdown, DiscountType, compute_cart_totals, coupon_discount_for, line_totals
from ordering.pricing.rules import PricingRules, ProductType


def resolve_price(product, pack_size_id=None):
    """Price, item-discounted price, stock and pack label for a product selection.

    A product that is sold in pack sizes must be bought in one of them; the pack
    then supplies price and stock.
    """
    if pack_size_id:
        if not product.pack_sizes:
            raise ValidationError({"pack_size_id": ["This product does not have pack sizes"]})
        pack = product.pack_size(pack_size_id)
        if pack is None:
            raise ValidationError({"pack_size_id": ["Invalid pack size selected"]})
        return pack.price, pack.discounted_price, pack.stock, pack.label

    if product.pack_sizes:
        raise ValidationError({"pack_size_id": ["Please select a pack size"]})

    return product.price, product.discounted_price, product.stock, None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Cart")
class AppliedCoupon:
    """Coupon terms frozen at the moment the coupon was applied."""

    coupon_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    max_discount = Float()
    discount_applied = Float(default=0.0)
    applied_at = DateTime()

    def with_discount(self, amount):
        return AppliedCoupon(
            coupon_id=self.coupon_id,
            code=self.code,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            max_discount=self.max_discount,
            discount_applied=amount,
            applied_at=self.applied_at,
        )


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Cart")
class LineItem:
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
    stock_snapshot = Integer(default=0)
    added_at = DateTime()

    def set_quantity(self, quantity):
        self.quantity = quantity
        self.line_total, self.line_discounted_total = line_totals(
            self.unit_price, self.discounted_unit_price, quantity
        )

    def matches(self, product_id, pack_size_id, combo_id=None):
        return (
            str(self.product_id) == str(product_id)
            and str(self.pack_size_id or "") == str(pack_size_id or "")
            and str(self.combo_id or "") == str(combo_id or "")
        )


@ordering.entity(part_of="Cart")
class AppliedCombo:
    combo_id = Identifier(required=True)
    title = String(max_length=255)
    discount_percentage = Float(required=True, min_value=0.0, max_value=100.0)
    multiplier = Integer(default=1, min_value=1)
    discount_applied = Float(default=0.0)
    applied_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@ordering.aggregate
class Cart:
    user_id = Identifier(identifier=True)
    items = HasMany(LineItem)
    applied_coupon = ValueObject(AppliedCoupon)
    applied_combos = HasMany(AppliedCombo)

    total_items = Integer(default=0)
    total_price = Float(default=0.0)
    total_discounted_price = Float(default=0.0)
    total_savings = Float(default=0.0)
    surcharge = Float(default=0.0)
    combo_discount = Float(default=0.0)
    coupon_discount = Float(default=0.0)
    tax = Float(default=0.0)
    final_total = Float(default=0.0)

    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def discounted_total_cannot_exceed_list_total(self):
        if (self.total_discounted_price or 0) > (self.total_price or 0):
            raise ValidationError({"total_discounted_price": ["Discounted total cannot exceed the list total"]})

    @invariant.post
    def final_total_cannot_be_negative(self):
        if (self.final_total or 0) < 0:
            raise ValidationError({"final_total": ["Final total cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def recalculate(self, rules: PricingRules | None = None) -> Breakdown:
        """Re-derive every total from items and applied offers."""
        breakdown = compute_cart_totals(self.items, self.applied_coupon, self.applied_combos, rules)

        with atomic_change(self):
            if not self.items:
                for combo in list(self.applied_combos):
                    self.remove_applied_combos(combo)
                if self.applied_coupon is not None:
                    self.applied_coupon = None

            for combo in self.applied_combos:
                amount = breakdown.discount_for_combo(combo.combo_id)
                if combo.discount_applied != amount:
                    combo.discount_applied = amount

            if self.applied_coupon is not None and self.applied_coupon.discount_applied != breakdown.coupon_discount:
                self.applied_coupon = self.applied_coupon.with_discount(breakdown.coupon_discount)

            self.total_items = breakdown.total_items
            self.total_price = breakdown.total_price
            self.total_discounted_price = breakdown.total_discounted_price
            self.total_savings = breakdown.total_savings
            self.surcharge = breakdown.surcharge
            self.combo_discount = breakdown.combo_discount
            self.coupon_discount = breakdown.coupon_discount
            self.tax = breakdown.tax
            self.final_total = breakdown.final_total

        return breakdown

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError({"item_id": [f"Item {item_id} not found in cart"]})
        return item

    def _quantity_in_cart(self, product_id, pack_size_id):
        return sum(
            i.quantity
            for i in self.items
            if str(i.product_id) == str(product_id) and str(i.pack_size_id or "") == str(pack_size_id or "")
        )

    def add_item(self, product, quantity, pack_size_id=None):
        """Add ``quantity`` units of a catalogue product, merging into an identical line."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
        if not product.is_active:
            raise ValidationError({"product_id": ["Product is not available"]})

        unit_price, discounted_price, stock, pack_label = resolve_price(product, pack_size_id)

        requested = self._quantity_in_cart(product.product_id, pack_size_id) + quantity
        if requested > stock:
            raise OutOfStockError(product.product_id, requested, stock)

        now = datetime.now(UTC)
        existing = next((i for i in self.items if i.matches(product.product_id, pack_size_id)), None)
        if existing:
            existing.set_quantity(existing.quantity + quantity)
            existing.stock_snapshot = stock
            item = existing
        else:
            item = LineItem(
                product_id=product.product_id,
                title=product.title,
                pack_size_id=pack_size_id,
                pack_label=pack_label,
                seller_id=product.seller_id,
                product_type=product.product_type,
                restaurant_name=product.restaurant_name,
                unit_price=unit_price,
                discounted_unit_price=discounted_price,
                quantity=quantity,
                stock_snapshot=stock,
                added_at=now,
            )
            item.set_quantity(quantity)
            self.add_items(item)

        self.updated_at = now
        self.recalculate()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.user_id),
                item_id=str(item.id),
                product_id=str(product.product_id),
                pack_size_id=str(pack_size_id) if pack_size_id else None,
                quantity=quantity,
                final_total=self.final_total,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity):
        """Set the quantity of a line, bounded by the stock seen when it was added."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self._find_item(item_id)
        requested = self._quantity_in_cart(item.product_id, item.pack_size_id) - item.quantity + quantity
        if requested > (item.stock_snapshot or 0):
            raise OutOfStockError(item.product_id, requested, item.stock_snapshot or 0)

        previous_quantity = item.quantity
        item.set_quantity(quantity)
        self.updated_at = datetime.now(UTC)
        self.recalculate()

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.user_id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
                final_total=self.final_total,
            )
        )

    def remove_item(self, item_id):
        """Remove a line; combos left without any tagged line are dropped too."""
        item = self._find_item(item_id)
        self.remove_items(item)

        for combo in list(self.applied_combos):
            if not any(str(i.combo_id or "") == str(combo.combo_id) for i in self.items):
                self.remove_applied_combos(combo)

        self.updated_at = datetime.now(UTC)
        self.recalculate()

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.user_id),
                item_id=str(item_id),
                product_id=str(item.product_id),
                final_total=self.final_total,
            )
        )

    def clear(self):
        """Empty the cart: no items, no offers, zero totals."""
        for item in list(self.items):
            self.remove_items(item)
        for combo in list(self.applied_combos):
            self.remove_applied_combos(combo)
        self.applied_coupon = None

        self.updated_at = datetime.now(UTC)
        self.recalculate()

        self.raise_(CartCleared(cart_id=str(self.user_id)))

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon, now=None):
        """Apply coupon terms from the coupon source after checking eligibility."""
        now = now or datetime.now(UTC)

        if not self.items:
            raise ValidationError({"cart": ["Cart is empty"]})
        if self.applied_coupon is not None:
            raise ConflictError({"coupon_code": ["A coupon is already applied. Remove it first."]})
        if not coupon.is_active:
            raise ValidationError({"coupon_code": ["Coupon is not active"]})
        if coupon.start_date and coupon.start_date > now:
            raise ValidationError({"coupon_code": ["Coupon is not yet valid"]})
        if coupon.end_date and coupon.end_date < now:
            raise ValidationError({"coupon_code": ["Coupon has expired"]})
        if coupon.max_usage_limit is not None and coupon.usage_count >= coupon.max_usage_limit:
            raise ValidationError({"coupon_code": ["Coupon usage limit has been reached"]})
        if coupon.uses_by(self.user_id) >= (coupon.per_user_limit or 1):
            raise ValidationError({"coupon_code": ["You have already used this coupon"]})
        if (self.total_discounted_price or 0) < (coupon.min_order_value or 0):
            raise ValidationError(
                {"coupon_code": [f"Minimum order value of {coupon.min_order_value:g} required for this coupon"]}
            )

        self.applied_coupon = AppliedCoupon(
            coupon_id=coupon.coupon_id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            max_discount=coupon.max_discount,
            discount_applied=coupon_discount_for(
                coupon.discount_type,
                coupon.discount_value,
                self.total_discounted_price or 0,
                coupon.max_discount,
            ),
            applied_at=now,
        )
        self.updated_at = now
        self.recalculate()

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.user_id),
                coupon_id=str(coupon.coupon_id),
                coupon_code=coupon.code,
                discount_applied=self.coupon_discount,
            )
        )

    def remove_coupon(self):
        if self.applied_coupon is None:
            raise ValidationError({"coupon_code": ["No coupon applied"]})
        self._drop_coupon(reason="Removed by customer")

    def strip_coupon(self, reason="Coupon is no longer available"):
        """Silently drop an applied coupon whose terms can no longer be resolved."""
        if self.applied_coupon is not None:
            self._drop_coupon(reason=reason)

    def _drop_coupon(self, reason):
        code = self.applied_coupon.code
        self.applied_coupon = None
        self.updated_at = datetime.now(UTC)
        self.recalculate()

        self.raise_(CartCouponRemoved(cart_id=str(self.user_id), coupon_code=code, reason=reason))

    # -------------------------------------------------------------------
    # Combos
    # -------------------------------------------------------------------
    def apply_combo(self, combo, components, multiplier=1):
        """Add every product of a combo as lines tagged with the combo.

        ``components`` pairs each ``ComboComponent`` with its catalogue
        ``ProductInfo``.
        """
        if not combo.is_active:
            raise ValidationError({"combo_id": ["Combo is not active"]})
        if multiplier is None or multiplier < 1:
            raise ValidationError({"quantity": ["Combo quantity must be at least 1"]})
        if any(str(c.combo_id) == str(combo.combo_id) for c in self.applied_combos):
            raise ConflictError({"combo_id": ["Combo is already applied to this cart"]})
        if not components:
            raise ValidationError({"combo_id": ["Combo has no products"]})

        now = datetime.now(UTC)
        new_lines = []
        for component, product in components:
            quantity = component.quantity * multiplier
            unit_price, discounted_price, stock, pack_label = resolve_price(product, component.pack_size_id)

            pending = sum(
                line.quantity
                for line in new_lines
                if line.matches(product.product_id, component.pack_size_id, combo.combo_id)
            )
            requested = self._quantity_in_cart(product.product_id, component.pack_size_id) + pending + quantity
            if requested > stock:
                raise OutOfStockError(product.product_id, requested, stock)

            line = LineItem(
                product_id=product.product_id,
                title=product.title,
                pack_size_id=component.pack_size_id,
                pack_label=pack_label,
                combo_id=combo.combo_id,
                seller_id=product.seller_id,
                product_type=product.product_type,
                restaurant_name=product.restaurant_name,
                unit_price=unit_price,
                discounted_unit_price=discounted_price,
                quantity=quantity,
                stock_snapshot=stock,
                added_at=now,
            )
            line.set_quantity(quantity)
            new_lines.append(line)

        for line in new_lines:
            self.add_items(line)
        self.add_applied_combos(
            AppliedCombo(
                combo_id=combo.combo_id,
                title=combo.title,
                discount_percentage=combo.discount_percentage,
                multiplier=multiplier,
                applied_at=now,
            )
        )

        self.updated_at = now
        self.recalculate()

        self.raise_(
            CartComboApplied(
                cart_id=str(self.user_id),
                combo_id=str(combo.combo_id),
                multiplier=multiplier,
                discount_applied=self.combo_discount,
            )
        )

    def remove_combo(self, combo_id):
        """Remove an applied combo together with every line tagged with it."""
        combo = next((c for c in self.applied_combos if str(c.combo_id) == str(combo_id)), None)
        if combo is None:
            raise ObjectNotFoundError({"combo_id": [f"Combo {combo_id} is not applied to this cart"]})

        for item in [i for i in self.items if str(i.combo_id or "") == str(combo_id)]:
            self.remove_items(item)
        self.remove_applied_combos(combo)

        self.updated_at = datetime.now(UTC)
        self.recalculate()

        self.raise_(CartComboRemoved(cart_id=str(self.user_id), combo_id=str(combo_id)))
