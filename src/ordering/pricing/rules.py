"""Category-aware pricing rules.

Grocery and food-delivery items share one pricing engine and one order state
machine; what differs per product type is the surcharge charged per unit and
the promised delivery window. Rules are read from the environment once and can
be replaced wholesale with ``set_pricing_rules()``.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum


class ProductType(Enum):
    GROCERY = "grocery"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class CategoryRule:
    surcharge_per_unit: float
    delivery_label: str
    delivery_window: timedelta


def _default_categories(delivery_surcharge: float = 10.0, grocery_surcharge: float = 0.0) -> dict[str, CategoryRule]:
    return {
        ProductType.DELIVERY.value: CategoryRule(
            surcharge_per_unit=delivery_surcharge,
            delivery_label="30-45 min",
            delivery_window=timedelta(minutes=45),
        ),
        ProductType.GROCERY.value: CategoryRule(
            surcharge_per_unit=grocery_surcharge,
            delivery_label="2-3 days",
            delivery_window=timedelta(days=3),
        ),
    }


@dataclass(frozen=True)
class PricingRules:
    """Tax rate (percent), currency and per-category rules."""

    tax_rate: float = 18.0
    currency: str = "INR"
    categories: dict[str, CategoryRule] = field(default_factory=_default_categories)

    def rule_for(self, product_type: str | None) -> CategoryRule:
        """Rule for ``product_type``; unknown types fall back to grocery."""
        return self.categories.get(product_type) or self.categories[ProductType.GROCERY.value]

    @classmethod
    def from_env(cls) -> "PricingRules":
        return cls(
            tax_rate=float(os.getenv("ORDERING_TAX_RATE", "18")),
            currency=os.getenv("ORDERING_CURRENCY", "INR"),
            categories=_default_categories(
                delivery_surcharge=float(os.getenv("ORDERING_DELIVERY_SURCHARGE", "10")),
                grocery_surcharge=float(os.getenv("ORDERING_GROCERY_SURCHARGE", "0")),
            ),
        )


_current_rules: PricingRules | None = None


def get_pricing_rules() -> PricingRules:
    """Return the active pricing rules, loading them from the environment on first use."""
    global _current_rules
    if _current_rules is None:
        _current_rules = PricingRules.from_env()
    return _current_rules


def set_pricing_rules(rules: PricingRules) -> None:
    global _current_rules
    _current_rules = rules


def reset_pricing_rules() -> None:
    global _current_rules
    _current_rules = None
