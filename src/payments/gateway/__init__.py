"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The fake
gateway is the default; a provider adapter implementing ``PaymentGateway`` is
installed with set_gateway() at application start.
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import (
    AWAITING_CUSTOMER,
    GatewayError,
    IntentStatus,
    PaymentGateway,
    PaymentIntent,
    RefundResult,
)

__all__ = [
    "AWAITING_CUSTOMER",
    "FakeGateway",
    "GatewayError",
    "IntentStatus",
    "PaymentGateway",
    "PaymentIntent",
    "RefundResult",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
