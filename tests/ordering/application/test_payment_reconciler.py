"""Application tests for PaymentReconciler — intents, verification, webhooks and refunds."""

import json

import pytest
from ordering.cart.items import AddToCart
from ordering.errors import ExternalServiceError
from ordering.order.cancellation import CancelOrder
from ordering.order.creation import PlaceOrder
from ordering.order.order import Order
from ordering.order.payment import (
    CHARGE_REFUNDED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    InitiatePayment,
    ProcessPaymentWebhook,
    RefundPayment,
    VerifyPayment,
    payment_status,
)
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def place(catalogue, gateway, address):
    def _place(payment_method="upi"):
        for product_id, quantity in (("prod-milk", 2), ("prod-biryani", 1)):
            current_domain.process(
                AddToCart(user_id="user-001", product_id=product_id, quantity=quantity),
                asynchronous=False,
            )
        order = current_domain.process(
            PlaceOrder(user_id="user-001", shipping_address=json.dumps(address), payment_method=payment_method),
            asynchronous=False,
        )
        return order.order_id

    return _place


def _initiate(order_id):
    return current_domain.process(InitiatePayment(order_id=order_id), asynchronous=False)


def _webhook(event_type, **kwargs):
    return current_domain.process(ProcessPaymentWebhook(event_type=event_type, **kwargs), asynchronous=False)


def _stored(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _paid_order(place):
    order_id = place()
    _initiate(order_id)
    current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)
    return order_id


class TestInitiatePayment:
    def test_creates_intent_for_final_total(self, place, gateway):
        order_id = place()
        result = _initiate(order_id)

        assert result["intent_id"].startswith("pi_fake_")
        assert result["client_secret"]
        assert result["amount"] == 482.0
        assert result["currency"] == "INR"
        assert result["reused"] is False
        assert _stored(order_id).payment_info.intent_id == result["intent_id"]
        assert gateway.calls[0] == {
            "method": "create_intent",
            "amount": 482.0,
            "order_ref": order_id,
            "currency": "INR",
        }

    def test_awaiting_intent_is_reused(self, place, gateway):
        order_id = place()
        first = _initiate(order_id)
        second = _initiate(order_id)

        assert second["intent_id"] == first["intent_id"]
        assert second["reused"] is True
        assert [c["method"] for c in gateway.calls].count("create_intent") == 1

    def test_cancelled_intent_is_replaced(self, place, gateway):
        order_id = place()
        first = _initiate(order_id)
        gateway.settle(first["intent_id"], status="canceled")

        second = _initiate(order_id)

        assert second["intent_id"] != first["intent_id"]
        assert _stored(order_id).payment_info.intent_id == second["intent_id"]

    def test_cod_order(self, place):
        order_id = place(payment_method="cod")
        with pytest.raises(ValidationError):
            _initiate(order_id)

    def test_already_paid(self, place):
        order_id = _paid_order(place)
        with pytest.raises(ValidationError):
            _initiate(order_id)

    def test_gateway_failure(self, place, gateway):
        order_id = place()
        gateway.configure(should_succeed=False, failure_reason="Gateway timeout")

        with pytest.raises(ExternalServiceError) as exc:
            _initiate(order_id)
        assert exc.value.service == "payment_gateway"
        assert exc.value.message == "Gateway timeout"
        assert _stored(order_id).payment_info.intent_id is None


class TestVerifyPayment:
    def test_verify_confirms_the_order(self, place):
        order_id = _paid_order(place)

        stored = _stored(order_id)
        assert stored.payment_info.status == "completed"
        assert stored.status == "confirmed"
        assert all(i.item_status == "confirmed" for i in stored.items)

    def test_verify_already_paid_skips_gateway(self, place, gateway):
        order_id = _paid_order(place)
        calls = len(gateway.calls)

        current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)
        assert len(gateway.calls) == calls

    def test_declined_payment(self, place, gateway):
        order_id = place()
        _initiate(order_id)
        gateway.configure(should_succeed=False, failure_reason="Card declined")

        with pytest.raises(ValidationError) as exc:
            current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)
        assert "requires_payment_method" in exc.value.messages["payment"][0]
        assert _stored(order_id).payment_info.status == "pending"

    def test_processing_intent_is_not_completed(self, place, gateway):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]
        gateway.settle(intent_id, status="processing")

        with pytest.raises(ValidationError):
            current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)

    def test_settled_intent_is_not_confirmed_again(self, place, gateway):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]
        gateway.settle(intent_id)

        current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)

        assert "confirm_intent" not in [c["method"] for c in gateway.calls]
        assert _stored(order_id).is_paid

    def test_no_intent(self, place):
        order_id = place()
        with pytest.raises(ValidationError):
            current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False)


class TestWebhook:
    def test_succeeded_webhook_confirms(self, place, gateway):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]

        _webhook(PAYMENT_SUCCEEDED, intent_id=intent_id, order_id=order_id)

        stored = _stored(order_id)
        assert stored.payment_info.status == "completed"
        assert stored.payment_info.transaction_id == intent_id
        assert stored.status == "confirmed"

    def test_duplicate_webhook_adds_no_history(self, place):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]

        _webhook(PAYMENT_SUCCEEDED, intent_id=intent_id, order_id=order_id)
        history = _stored(order_id).history()
        _webhook(PAYMENT_SUCCEEDED, intent_id=intent_id, order_id=order_id)

        assert _stored(order_id).history() == history

    def test_webhook_after_verify_is_a_no_op(self, place):
        order_id = _paid_order(place)
        stored = _stored(order_id)

        _webhook(PAYMENT_SUCCEEDED, intent_id=stored.payment_info.intent_id, order_id=order_id)

        assert _stored(order_id).history() == stored.history()

    def test_order_is_found_through_the_intent(self, place):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]

        _webhook(PAYMENT_SUCCEEDED, intent_id=intent_id)

        assert _stored(order_id).is_paid

    def test_webhook_without_reference(self, place):
        with pytest.raises(ValidationError):
            _webhook(PAYMENT_SUCCEEDED)

    def test_failed_webhook(self, place):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]

        _webhook(PAYMENT_FAILED, intent_id=intent_id, order_id=order_id, failure_reason="Insufficient funds")

        stored = _stored(order_id)
        assert stored.payment_info.status == "failed"
        assert stored.payment_info.failure_reason == "Insufficient funds"
        assert stored.status == "pending"

    def test_failed_webhook_after_success_is_ignored(self, place):
        order_id = _paid_order(place)
        _webhook(PAYMENT_FAILED, order_id=order_id, failure_reason="Late")

        assert _stored(order_id).payment_info.status == "completed"

    def test_refund_webhook(self, place):
        order_id = _paid_order(place)

        _webhook(CHARGE_REFUNDED, order_id=order_id, refund_id="re_ext_1", amount=482.0)

        stored = _stored(order_id)
        assert stored.payment_info.status == "refunded"
        assert stored.payment_info.refund_id == "re_ext_1"
        assert stored.status == "cancelled"

    def test_repeated_refund_webhook_is_skipped(self, place):
        order_id = _paid_order(place)
        _webhook(CHARGE_REFUNDED, order_id=order_id, refund_id="re_ext_1", amount=482.0)
        history = _stored(order_id).history()

        _webhook(CHARGE_REFUNDED, order_id=order_id, refund_id="re_ext_1", amount=482.0)

        assert _stored(order_id).history() == history

    def test_succeeded_webhook_after_cancellation_keeps_payment_refundable(self, place, gateway):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]
        current_domain.process(CancelOrder(order_id=order_id, reason="Changed my mind"), asynchronous=False)
        gateway.settle(intent_id)

        _webhook(PAYMENT_SUCCEEDED, intent_id=intent_id, order_id=order_id)

        stored = _stored(order_id)
        assert stored.status == "cancelled"
        assert stored.payment_info.status == "completed"

        current_domain.process(RefundPayment(order_id=order_id, reason="Order was cancelled"), asynchronous=False)

        stored = _stored(order_id)
        assert stored.payment_info.status == "refunded"
        assert stored.payment_info.refund_amount == 482.0

    def test_unknown_event_type_is_ignored(self, place):
        order_id = place()
        assert _webhook("customer.created", order_id=order_id) is None
        assert _stored(order_id).payment_info.status == "pending"


class TestRefundPayment:
    def test_full_refund(self, place, gateway):
        order_id = _paid_order(place)

        current_domain.process(RefundPayment(order_id=order_id, reason="Customer request"), asynchronous=False)

        stored = _stored(order_id)
        assert stored.payment_info.status == "refunded"
        assert stored.payment_info.refund_amount == 482.0
        assert stored.payment_info.refund_id.startswith("re_fake_")
        assert stored.status == "cancelled"

    def test_partial_refund(self, place):
        order_id = _paid_order(place)
        current_domain.process(RefundPayment(order_id=order_id, amount=100.0), asynchronous=False)

        assert _stored(order_id).payment_info.refund_amount == 100.0

    def test_amount_above_total(self, place):
        order_id = _paid_order(place)
        with pytest.raises(ValidationError) as exc:
            current_domain.process(RefundPayment(order_id=order_id, amount=500.0), asynchronous=False)
        assert "amount" in exc.value.messages

    def test_unpaid_order(self, place):
        order_id = place()
        with pytest.raises(ValidationError):
            current_domain.process(RefundPayment(order_id=order_id), asynchronous=False)

    def test_cod_order(self, place):
        order_id = place(payment_method="cod")
        with pytest.raises(ValidationError):
            current_domain.process(RefundPayment(order_id=order_id), asynchronous=False)

    def test_gateway_refuses(self, place, gateway):
        order_id = _paid_order(place)
        gateway.configure(should_succeed=False, failure_reason="Refund window closed")

        with pytest.raises(ExternalServiceError):
            current_domain.process(RefundPayment(order_id=order_id), asynchronous=False)
        assert _stored(order_id).payment_info.status == "completed"


class TestPaymentStatus:
    def test_reports_gateway_view(self, place):
        order_id = place()
        intent_id = _initiate(order_id)["intent_id"]

        status = payment_status(_stored(order_id))

        assert status["method"] == "upi"
        assert status["status"] == "pending"
        assert status["intent_id"] == intent_id
        assert status["intent_status"] == "requires_payment_method"
        assert status["amount"] == 482.0

    def test_cod_has_no_intent(self, place):
        status = payment_status(_stored(place(payment_method="cod")))
        assert status["intent_status"] is None
