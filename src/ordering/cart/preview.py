"""Billing preview — the cart's lines grouped by seller, with the price breakdown."""

from collections import OrderedDict

from ordering.pricing.engine import compute_cart_totals
from ordering.pricing.rules import get_pricing_rules


def billing_preview(cart, rules=None) -> dict:
    rules = rules or get_pricing_rules()
    breakdown = compute_cart_totals(cart.items, cart.applied_coupon, cart.applied_combos, rules)

    sellers = OrderedDict()
    for item in cart.items:
        seller = sellers.setdefault(
            str(item.seller_id or ""),
            {"seller_id": str(item.seller_id or ""), "items": [], "subtotal": 0.0, "discounted_subtotal": 0.0},
        )
        seller["items"].append(
            {
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "title": item.title,
                "pack_label": item.pack_label,
                "combo_id": str(item.combo_id) if item.combo_id else None,
                "quantity": item.quantity,
                "line_total": item.line_total,
                "line_discounted_total": item.line_discounted_total,
            }
        )
        seller["subtotal"] = round(seller["subtotal"] + item.line_total, 2)
        seller["discounted_subtotal"] = round(seller["discounted_subtotal"] + item.line_discounted_total, 2)

    return {
        "user_id": str(cart.user_id),
        "currency": rules.currency,
        "sellers": list(sellers.values()),
        "coupon_code": cart.applied_coupon.code if cart.applied_coupon else None,
        "combos": [str(c.combo_id) for c in cart.applied_combos],
        "summary": {
            "total_items": breakdown.total_items,
            "total_price": breakdown.total_price,
            "total_discounted_price": breakdown.total_discounted_price,
            "total_savings": breakdown.total_savings,
            "combo_discount": breakdown.combo_discount,
            "coupon_discount": breakdown.coupon_discount,
            "subtotal_after_discounts": breakdown.discounted_subtotal,
            "surcharge": breakdown.surcharge,
            "tax": breakdown.tax,
            "final_total": breakdown.final_total,
        },
    }
