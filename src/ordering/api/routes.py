"""FastAPI routes for the Ordering domain — carts, orders and payments."""

import json

from fastapi import APIRouter, Header, HTTPException
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddToCartRequest,
    AppliedComboResponse,
    AppliedCouponResponse,
    ApplyComboRequest,
    ApplyCouponRequest,
    CancelOrderRequest,
    CartLineResponse,
    CartResponse,
    OrderItemResponse,
    OrderResponse,
    PaymentInfoResponse,
    PaymentIntentResponse,
    PlaceOrderRequest,
    PriceSummaryResponse,
    RefundRequest,
    ReturnOrderRequest,
    StatusEntryResponse,
    StatusResponse,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    WebhookRequest,
)
from ordering.cart.cart import Cart
from ordering.cart.combos import ApplyCombo, RemoveCombo
from ordering.cart.coupons import ApplyCoupon, RemoveCoupon
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartItem
from ordering.cart.management import ClearCart, load_cart
from ordering.cart.preview import billing_preview
from ordering.order.cancellation import CancelOrder, ReturnOrder
from ordering.order.creation import PlaceOrder
from ordering.order.fulfillment import UpdateOrderStatus
from ordering.order.order import Order
from ordering.order.payment import (
    InitiatePayment,
    ProcessPaymentWebhook,
    RefundPayment,
    VerifyPayment,
    payment_status,
)
from ordering.order.timeline import order_timeline
from payments.gateway import get_gateway

cart_router = APIRouter(prefix="/carts", tags=["carts"])
order_router = APIRouter(prefix="/orders", tags=["orders"])
payment_router = APIRouter(prefix="/payments", tags=["payments"])


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _cart_response(cart) -> CartResponse:
    coupon = None
    if cart.applied_coupon is not None:
        coupon = AppliedCouponResponse(
            code=cart.applied_coupon.code,
            discount_type=cart.applied_coupon.discount_type,
            discount_value=cart.applied_coupon.discount_value,
            discount_applied=cart.applied_coupon.discount_applied or 0.0,
        )

    return CartResponse(
        user_id=str(cart.user_id),
        items=[
            CartLineResponse(
                item_id=str(i.id),
                product_id=str(i.product_id),
                title=i.title,
                pack_size_id=str(i.pack_size_id) if i.pack_size_id else None,
                pack_label=i.pack_label,
                combo_id=str(i.combo_id) if i.combo_id else None,
                seller_id=str(i.seller_id) if i.seller_id else None,
                product_type=i.product_type,
                unit_price=i.unit_price,
                discounted_unit_price=i.discounted_unit_price,
                quantity=i.quantity,
                line_total=i.line_total,
                line_discounted_total=i.line_discounted_total,
            )
            for i in cart.items
        ],
        coupon=coupon,
        combos=[
            AppliedComboResponse(
                combo_id=str(c.combo_id),
                title=c.title,
                discount_percentage=c.discount_percentage,
                discount_applied=c.discount_applied or 0.0,
            )
            for c in cart.applied_combos
        ],
        total_items=cart.total_items or 0,
        total_price=cart.total_price or 0.0,
        total_discounted_price=cart.total_discounted_price or 0.0,
        total_savings=cart.total_savings or 0.0,
        surcharge=cart.surcharge or 0.0,
        combo_discount=cart.combo_discount or 0.0,
        coupon_discount=cart.coupon_discount or 0.0,
        tax=cart.tax or 0.0,
        final_total=cart.final_total or 0.0,
    )


def _iso(value):
    return value.isoformat() if value else None


def _order_response(order) -> OrderResponse:
    summary = order.price_summary
    timeline = order.timeline
    return OrderResponse(
        order_id=str(order.order_id),
        user_id=str(order.user_id),
        status=order.status,
        items=[
            OrderItemResponse(
                item_id=str(i.id),
                product_id=str(i.product_id),
                title=i.title,
                seller_id=str(i.seller_id) if i.seller_id else None,
                product_type=i.product_type,
                quantity=i.quantity,
                unit_price=i.unit_price,
                discounted_unit_price=i.discounted_unit_price,
                line_discounted_total=i.line_discounted_total,
                item_status=i.item_status,
                estimated_delivery=i.estimated_delivery,
                status_history=[StatusEntryResponse(**h) for h in i.history()],
            )
            for i in order.items
        ],
        status_history=[StatusEntryResponse(**h) for h in order.history()],
        price_summary=PriceSummaryResponse(
            subtotal=summary.subtotal,
            item_discount=summary.item_discount,
            combo_discount=summary.combo_discount,
            coupon_discount=summary.coupon_discount,
            subtotal_after_discounts=summary.subtotal_after_discounts,
            surcharge=summary.surcharge,
            tax=summary.tax,
            final_total=summary.final_total,
            currency=summary.currency,
        ),
        payment_info=PaymentInfoResponse(
            method=order.payment_info.method,
            status=order.payment_info.status,
            intent_id=order.payment_info.intent_id,
            transaction_id=order.payment_info.transaction_id,
            refund_amount=order.payment_info.refund_amount,
        ),
        coupon_code=order.applied_coupon.code if order.applied_coupon else None,
        estimated_delivery_date=_iso(order.estimated_delivery_date),
        timeline={
            "order_created": _iso(timeline.order_created),
            "payment_completed": _iso(timeline.payment_completed),
            "order_confirmed": _iso(timeline.order_confirmed),
            "processing_started": _iso(timeline.processing_started),
            "order_shipped": _iso(timeline.order_shipped),
            "order_delivered": _iso(timeline.order_delivered),
            "order_cancelled": _iso(timeline.order_cancelled),
            "order_returned": _iso(timeline.order_returned),
        },
    )


def _get_order(order_id):
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Cart Routes
# ---------------------------------------------------------------------------
@cart_router.get("/{user_id}", response_model=CartResponse)
async def get_cart(user_id: str) -> CartResponse:
    return _cart_response(load_cart(user_id, create=True))


@cart_router.get("/{user_id}/billing-preview")
async def get_billing_preview(user_id: str) -> dict:
    return billing_preview(load_cart(user_id, create=True))


@cart_router.post("/{user_id}/items", response_model=CartResponse)
async def add_cart_item(user_id: str, body: AddToCartRequest) -> CartResponse:
    command = AddToCart(
        user_id=user_id,
        product_id=body.product_id,
        pack_size_id=body.pack_size_id,
        quantity=body.quantity,
    )
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.put("/{user_id}/items/{item_id}", response_model=CartResponse)
async def update_cart_item(user_id: str, item_id: str, body: UpdateCartItemRequest) -> CartResponse:
    command = UpdateCartItem(user_id=user_id, item_id=item_id, quantity=body.quantity)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.delete("/{user_id}/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(user_id: str, item_id: str) -> CartResponse:
    command = RemoveFromCart(user_id=user_id, item_id=item_id)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.post("/{user_id}/coupon", response_model=CartResponse)
async def apply_coupon(user_id: str, body: ApplyCouponRequest) -> CartResponse:
    command = ApplyCoupon(user_id=user_id, code=body.code)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.delete("/{user_id}/coupon", response_model=CartResponse)
async def remove_coupon(user_id: str) -> CartResponse:
    command = RemoveCoupon(user_id=user_id)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.post("/{user_id}/combos", response_model=CartResponse)
async def apply_combo(user_id: str, body: ApplyComboRequest) -> CartResponse:
    command = ApplyCombo(user_id=user_id, combo_id=body.combo_id, quantity=body.quantity)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.delete("/{user_id}/combos/{combo_id}", response_model=CartResponse)
async def remove_combo(user_id: str, combo_id: str) -> CartResponse:
    command = RemoveCombo(user_id=user_id, combo_id=combo_id)
    return _cart_response(current_domain.process(command, asynchronous=False))


@cart_router.delete("/{user_id}", response_model=CartResponse)
async def clear_cart(user_id: str) -> CartResponse:
    try:
        current_domain.repository_for(Cart).get(user_id)
    except ObjectNotFoundError:
        return _cart_response(Cart.create(user_id=user_id))
    return _cart_response(current_domain.process(ClearCart(user_id=user_id), asynchronous=False))


# ---------------------------------------------------------------------------
# Order Routes
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest) -> OrderResponse:
    command = PlaceOrder(
        user_id=body.user_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        payment_method=body.payment_method,
    )
    return _order_response(current_domain.process(command, asynchronous=False))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(_get_order(order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        notes=body.notes,
        item_id=body.item_id,
        seller_id=body.seller_id,
    )
    return _order_response(current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderResponse:
    command = CancelOrder(order_id=order_id, reason=body.reason)
    return _order_response(current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/return", response_model=OrderResponse)
async def return_order(order_id: str, body: ReturnOrderRequest) -> OrderResponse:
    command = ReturnOrder(
        order_id=order_id,
        reason=body.reason,
        item_ids=json.dumps(body.item_ids) if body.item_ids else None,
    )
    return _order_response(current_domain.process(command, asynchronous=False))


@order_router.get("/{order_id}/timeline")
async def get_order_timeline(order_id: str, item_id: str | None = None) -> dict:
    return order_timeline(_get_order(order_id), item_id=item_id)


@order_router.post("/{order_id}/payment", response_model=PaymentIntentResponse)
async def initiate_payment(order_id: str) -> PaymentIntentResponse:
    result = current_domain.process(InitiatePayment(order_id=order_id), asynchronous=False)
    return PaymentIntentResponse(**result)


@order_router.post("/{order_id}/payment/verify", response_model=OrderResponse)
async def verify_payment(order_id: str) -> OrderResponse:
    return _order_response(current_domain.process(VerifyPayment(order_id=order_id), asynchronous=False))


@order_router.get("/{order_id}/payment")
async def get_payment_status(order_id: str) -> dict:
    return payment_status(_get_order(order_id))


@order_router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(order_id: str, body: RefundRequest) -> OrderResponse:
    command = RefundPayment(order_id=order_id, amount=body.amount, reason=body.reason)
    return _order_response(current_domain.process(command, asynchronous=False))


# ---------------------------------------------------------------------------
# Payment Webhook
# ---------------------------------------------------------------------------
@payment_router.post("/webhook", response_model=StatusResponse)
async def process_webhook(
    body: WebhookRequest,
    x_gateway_signature: str = Header(default=""),
) -> StatusResponse:
    """Process a payment gateway webhook callback."""
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(json.dumps(body.model_dump()), x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    obj = body.data.get("object", {}) if isinstance(body.data, dict) else {}
    metadata = obj.get("metadata") or {}
    last_error = obj.get("last_payment_error") or {}

    if body.type == "charge.refunded":
        intent_id = obj.get("payment_intent")
        refund_id = obj.get("refund_id") or obj.get("id")
        amount = obj.get("amount_refunded")
    else:
        intent_id = obj.get("id")
        refund_id = None
        amount = None

    command = ProcessPaymentWebhook(
        event_type=body.type,
        intent_id=intent_id,
        order_id=metadata.get("order_id"),
        failure_reason=last_error.get("message"),
        refund_id=refund_id,
        amount=amount,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="ok")
