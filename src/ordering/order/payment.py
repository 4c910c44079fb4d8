"""Payment reconciliation — the gateway's intent lifecycle mapped onto orders.

Online orders are paid through a payment intent. The customer completes the
intent client-side; the backend learns the outcome either by polling
(``VerifyPayment``) or from a signed webhook (``ProcessPaymentWebhook``).
Both paths end in the same order methods, which are idempotent, so a webhook
arriving after a successful poll (or twice) changes nothing.

Webhook event types:
    payment_intent.succeeded       → payment completed, pending items confirmed
    payment_intent.payment_failed  → payment failed, order status untouched
    charge.refunded                → payment refunded, order cancelled
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import ExternalServiceError
from ordering.order.order import Order
from ordering.order.status import PaymentStatus
from payments.gateway import AWAITING_CUSTOMER, GatewayError, IntentStatus, get_gateway

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"


def call_gateway(operation, *args, **kwargs):
    """Invoke a gateway operation, translating its errors for the caller."""
    try:
        return operation(*args, **kwargs)
    except GatewayError as exc:
        logger.error("Payment gateway call failed", operation=operation.__name__, error=exc.message, code=exc.code)
        raise ExternalServiceError("payment_gateway", exc.message, code=exc.code) from exc


def payment_status(order) -> dict:
    """Stored payment info plus the gateway's view of the intent, if any."""
    info = order.payment_info
    intent_status = None
    if info.intent_id:
        intent_status = call_gateway(get_gateway().retrieve_intent, info.intent_id).status

    return {
        "order_id": str(order.order_id),
        "method": info.method,
        "status": info.status,
        "intent_id": info.intent_id,
        "intent_status": intent_status,
        "transaction_id": info.transaction_id,
        "paid_at": info.paid_at.isoformat() if info.paid_at else None,
        "refund_amount": info.refund_amount,
        "amount": order.price_summary.final_total,
        "currency": order.price_summary.currency,
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@ordering.command(part_of="Order")
class InitiatePayment:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class ProcessPaymentWebhook:
    event_type = String(required=True, max_length=100)
    intent_id = String(max_length=255)
    order_id = Identifier()
    failure_reason = String(max_length=500)
    refund_id = String(max_length=255)
    amount = Float()


@ordering.command(part_of="Order")
class RefundPayment:
    order_id = Identifier(required=True)
    amount = Float()
    reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------
@ordering.command_handler(part_of=Order)
class PaymentReconciler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.is_online_payment:
            raise ValidationError({"payment_method": ["Online payment is not applicable for this order"]})
        if order.payment_info.status in {PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value}:
            raise ValidationError({"payment": [f"Payment is already {order.payment_info.status}"]})

        gateway = get_gateway()
        amount = order.price_summary.final_total
        currency = order.price_summary.currency

        if order.payment_info.intent_id:
            intent = call_gateway(gateway.retrieve_intent, order.payment_info.intent_id)
            if intent.status in AWAITING_CUSTOMER:
                return {
                    "order_id": str(order.order_id),
                    "intent_id": intent.id,
                    "client_secret": intent.client_secret,
                    "amount": intent.amount,
                    "currency": intent.currency,
                    "reused": True,
                }

        intent = call_gateway(gateway.create_intent, amount, str(order.order_id), currency=currency)
        order.attach_payment_intent(intent.id, intent.client_secret)
        repo.add(order)

        logger.info("Payment intent created", order_id=str(order.order_id), intent_id=intent.id, amount=amount)
        return {
            "order_id": str(order.order_id),
            "intent_id": intent.id,
            "client_secret": intent.client_secret,
            "amount": amount,
            "currency": currency,
            "reused": False,
        }

    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.payment_info.intent_id:
            raise ValidationError({"payment": ["No payment has been initiated for this order"]})
        if order.is_paid:
            return order

        gateway = get_gateway()
        intent = call_gateway(gateway.retrieve_intent, order.payment_info.intent_id)
        if intent.status in {
            IntentStatus.REQUIRES_PAYMENT_METHOD.value,
            IntentStatus.REQUIRES_CONFIRMATION.value,
        }:
            intent = call_gateway(gateway.confirm_intent, intent.id)

        if intent.status != IntentStatus.SUCCEEDED.value:
            raise ValidationError(
                {"payment": [f"Payment not completed (gateway status: {intent.status})"]}
            )

        order.confirm_payment(transaction_id=intent.id)
        repo.add(order)

        logger.info("Payment verified", order_id=str(order.order_id), intent_id=intent.id)
        return order

    @handle(ProcessPaymentWebhook)
    def process_webhook(self, command):
        if command.event_type not in {PAYMENT_SUCCEEDED, PAYMENT_FAILED, CHARGE_REFUNDED}:
            logger.info("Ignoring unhandled webhook event", event_type=command.event_type)
            return None

        order_id = command.order_id
        if not order_id:
            if not command.intent_id:
                raise ValidationError({"order_id": ["Webhook payload carries no order reference"]})
            order_id = call_gateway(get_gateway().retrieve_intent, command.intent_id).order_ref

        repo = current_domain.repository_for(Order)
        order = repo.get(order_id)

        if command.event_type == PAYMENT_SUCCEEDED:
            changed = order.confirm_payment(transaction_id=command.intent_id)
        elif command.event_type == PAYMENT_FAILED:
            changed = order.record_payment_failure(command.failure_reason or "Payment failed")
        elif order.payment_info.status == PaymentStatus.REFUNDED.value:
            changed = False
        else:
            changed = True
            order.record_refund(
                command.amount or order.price_summary.final_total,
                refund_id=command.refund_id,
                reason="Refunded by payment provider",
            )

        if changed:
            repo.add(order)
        logger.info(
            "Payment webhook processed",
            event_type=command.event_type,
            order_id=str(order.order_id),
            changed=changed,
            payment_status=order.payment_info.status,
        )
        return order

    @handle(RefundPayment)
    def refund_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.is_online_payment:
            raise ValidationError({"payment_method": ["Refunds are only available for online payments"]})
        if order.payment_info.status != PaymentStatus.COMPLETED.value:
            raise ValidationError({"payment": ["Only completed payments can be refunded"]})

        final_total = order.price_summary.final_total
        amount = command.amount if command.amount is not None else final_total
        if amount <= 0 or amount > final_total:
            raise ValidationError({"amount": [f"Refund amount must be between 0 and {final_total:g}"]})

        refund = call_gateway(get_gateway().create_refund, order.payment_info.intent_id, amount)
        order.record_refund(amount, refund_id=refund.id, reason=command.reason)
        repo.add(order)

        logger.info("Payment refunded", order_id=str(order.order_id), refund_id=refund.id, amount=amount)
        return order
