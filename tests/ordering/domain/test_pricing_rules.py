"""Tests for category pricing rules and their factory."""

from datetime import timedelta

from ordering.pricing.rules import (
    PricingRules,
    ProductType,
    get_pricing_rules,
    reset_pricing_rules,
    set_pricing_rules,
)


class TestDefaults:
    def test_default_tax_and_currency(self):
        rules = PricingRules()
        assert rules.tax_rate == 18.0
        assert rules.currency == "INR"

    def test_delivery_rule(self):
        rule = PricingRules().rule_for(ProductType.DELIVERY.value)
        assert rule.surcharge_per_unit == 10.0
        assert rule.delivery_label == "30-45 min"
        assert rule.delivery_window == timedelta(minutes=45)

    def test_grocery_rule(self):
        rule = PricingRules().rule_for(ProductType.GROCERY.value)
        assert rule.surcharge_per_unit == 0.0
        assert rule.delivery_label == "2-3 days"
        assert rule.delivery_window == timedelta(days=3)

    def test_unknown_type_falls_back_to_grocery(self):
        rules = PricingRules()
        assert rules.rule_for("pharmacy") == rules.rule_for(ProductType.GROCERY.value)
        assert rules.rule_for(None) == rules.rule_for(ProductType.GROCERY.value)


class TestFromEnv:
    def test_reads_overrides(self, monkeypatch):
        monkeypatch.setenv("ORDERING_TAX_RATE", "5")
        monkeypatch.setenv("ORDERING_CURRENCY", "USD")
        monkeypatch.setenv("ORDERING_DELIVERY_SURCHARGE", "25")
        monkeypatch.setenv("ORDERING_GROCERY_SURCHARGE", "2")

        rules = PricingRules.from_env()

        assert rules.tax_rate == 5.0
        assert rules.currency == "USD"
        assert rules.rule_for("delivery").surcharge_per_unit == 25.0
        assert rules.rule_for("grocery").surcharge_per_unit == 2.0

    def test_defaults_without_env(self, monkeypatch):
        for name in ("ORDERING_TAX_RATE", "ORDERING_CURRENCY", "ORDERING_DELIVERY_SURCHARGE"):
            monkeypatch.delenv(name, raising=False)
        assert PricingRules.from_env().tax_rate == 18.0


class TestFactory:
    def test_set_and_reset(self):
        custom = PricingRules(tax_rate=12.0)
        set_pricing_rules(custom)
        assert get_pricing_rules() is custom

        reset_pricing_rules()
        assert get_pricing_rules() is not custom

    def test_rules_are_loaded_once(self):
        assert get_pricing_rules() is get_pricing_rules()
