"""Payment gateway port (abstract interface).

Models the payment-intent lifecycle of card/UPI style gateways: an intent is
created for an order amount, the customer completes it client-side with the
returned client secret, and the backend retrieves, confirms or refunds it.
Adapters translate their provider's API into these calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class IntentStatus(Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"


# Intents in these states can still be completed by the customer
AWAITING_CUSTOMER = {
    IntentStatus.REQUIRES_PAYMENT_METHOD.value,
    IntentStatus.REQUIRES_CONFIRMATION.value,
    IntentStatus.REQUIRES_ACTION.value,
}


class GatewayError(Exception):
    """Raised when the gateway rejects a call or cannot be reached."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass(frozen=True)
class PaymentIntent:
    """Snapshot of a payment intent as reported by the gateway."""

    id: str
    client_secret: str
    status: str
    amount: float
    currency: str
    order_ref: str
    last_error: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund request."""

    id: str
    status: str
    amount: float


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(self, amount: float, order_ref: str, currency: str = "INR") -> PaymentIntent:
        """Create a payment intent for an order."""
        ...

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of an intent."""
        ...

    @abstractmethod
    def confirm_intent(self, intent_id: str) -> PaymentIntent:
        """Confirm an intent that is awaiting confirmation."""
        ...

    @abstractmethod
    def create_refund(self, intent_id: str, amount: float) -> RefundResult:
        """Refund (part of) a succeeded intent."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
