"""Configurable fake payment gateway for development and testing.

Keeps intents in memory and never calls out. Behaviour is switched at runtime
with ``configure()``; ``settle()`` stands in for the customer finishing the
payment on the client.
"""

from uuid import uuid4

from payments.gateway.port import (
    GatewayError,
    IntentStatus,
    PaymentGateway,
    PaymentIntent,
    RefundResult,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self.intents: dict[str, PaymentIntent] = {}
        self.refunded: dict[str, float] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def settle(self, intent_id: str, status: str = IntentStatus.SUCCEEDED.value) -> PaymentIntent:
        """Move an intent to ``status`` as if the customer acted on it."""
        intent = self._get(intent_id)
        return self._store(intent, status=status)

    def create_intent(self, amount: float, order_ref: str, currency: str = "INR") -> PaymentIntent:
        self.calls.append({"method": "create_intent", "amount": amount, "order_ref": order_ref, "currency": currency})

        if not self.should_succeed:
            raise GatewayError(self.failure_reason, code="intent_creation_failed")

        intent_id = f"pi_fake_{uuid4().hex[:12]}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            status=IntentStatus.REQUIRES_PAYMENT_METHOD.value,
            amount=amount,
            currency=currency,
            order_ref=order_ref,
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "retrieve_intent", "intent_id": intent_id})
        return self._get(intent_id)

    def confirm_intent(self, intent_id: str) -> PaymentIntent:
        self.calls.append({"method": "confirm_intent", "intent_id": intent_id})
        intent = self._get(intent_id)

        if self.should_succeed:
            return self._store(intent, status=IntentStatus.SUCCEEDED.value)
        return self._store(
            intent,
            status=IntentStatus.REQUIRES_PAYMENT_METHOD.value,
            last_error=self.failure_reason,
        )

    def create_refund(self, intent_id: str, amount: float) -> RefundResult:
        self.calls.append({"method": "create_refund", "intent_id": intent_id, "amount": amount})
        intent = self._get(intent_id)

        if not self.should_succeed:
            raise GatewayError(self.failure_reason, code="refund_failed")
        if intent.status != IntentStatus.SUCCEEDED.value:
            raise GatewayError(f"Intent {intent_id} has not succeeded", code="charge_not_captured")

        already_refunded = self.refunded.get(intent_id, 0.0)
        if already_refunded + amount > intent.amount:
            raise GatewayError("Refund exceeds the captured amount", code="amount_too_large")

        self.refunded[intent_id] = already_refunded + amount
        return RefundResult(id=f"re_fake_{uuid4().hex[:12]}", status="succeeded", amount=amount)

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"

    def _get(self, intent_id: str) -> PaymentIntent:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise GatewayError(f"No such payment intent: {intent_id}", code="resource_missing")
        return intent

    def _store(self, intent: PaymentIntent, **changes) -> PaymentIntent:
        updated = PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            status=changes.get("status", intent.status),
            amount=intent.amount,
            currency=intent.currency,
            order_ref=intent.order_ref,
            last_error=changes.get("last_error", intent.last_error),
        )
        self.intents[intent.id] = updated
        return updated
