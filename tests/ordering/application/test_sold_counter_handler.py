"""Application tests for SoldCounterUpdater — Ordering reports paid quantities to the catalogue.

Covers:
- increment_sold_counters: every paid line is added to the product's sold count
- catalogue outage: retried, then logged and dropped without raising
- COD orders: counters move when delivery settles the payment
"""

import json
from datetime import UTC, datetime

import pytest
from ordering.order.events import PaymentCompleted
from ordering.order.sales import SoldCounterUpdater
from ordering.utils import side_effects


def _payment_completed(lines):
    return PaymentCompleted(
        order_id="ORD-1700000000000-1234",
        payment_method="upi",
        transaction_id="pi_fake_001",
        amount=482.0,
        items=json.dumps(lines),
        paid_at=datetime.now(UTC),
    )


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(side_effects, "MAX_ATTEMPTS", 2)


class TestIncrementSoldCounters:
    def test_counts_every_line(self, catalogue):
        SoldCounterUpdater().increment_sold_counters(
            _payment_completed(
                [
                    {"product_id": "prod-milk", "quantity": 2},
                    {"product_id": "prod-biryani", "quantity": 1},
                ]
            )
        )

        assert catalogue.sold == {"prod-milk": 2, "prod-biryani": 1}

    def test_catalogue_outage_does_not_raise(self, catalogue):
        catalogue.fail_sold_updates = True

        SoldCounterUpdater().increment_sold_counters(_payment_completed([{"product_id": "prod-milk", "quantity": 2}]))

        assert catalogue.sold == {}
        assert len(catalogue.calls) == 2

    def test_counts_lines_from_a_delivered_cod_order(self, catalogue, build_order):
        order = build_order(payment_method="cod")
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order.update_status(status)
        event = next(e for e in order._events if isinstance(e, PaymentCompleted))

        SoldCounterUpdater().increment_sold_counters(event)

        assert catalogue.sold == {"prod-milk": 2, "prod-biryani": 1}
