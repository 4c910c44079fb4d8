"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    phone: str
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    pack_size_id: str | None = None
    quantity: int = Field(ge=1, default=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-basmati-rice",
                    "pack_size_id": "5kg",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class ApplyComboRequest(BaseModel):
    combo_id: str
    quantity: int = Field(ge=1, default=1)


class CartLineResponse(BaseModel):
    item_id: str
    product_id: str
    title: str | None = None
    pack_size_id: str | None = None
    pack_label: str | None = None
    combo_id: str | None = None
    seller_id: str | None = None
    product_type: str | None = None
    unit_price: float
    discounted_unit_price: float | None = None
    quantity: int
    line_total: float
    line_discounted_total: float


class AppliedCouponResponse(BaseModel):
    code: str
    discount_type: str
    discount_value: float
    discount_applied: float


class AppliedComboResponse(BaseModel):
    combo_id: str
    title: str | None = None
    discount_percentage: float
    discount_applied: float


class CartResponse(BaseModel):
    user_id: str
    items: list[CartLineResponse] = []
    coupon: AppliedCouponResponse | None = None
    combos: list[AppliedComboResponse] = []
    total_items: int = 0
    total_price: float = 0.0
    total_discounted_price: float = 0.0
    total_savings: float = 0.0
    surcharge: float = 0.0
    combo_discount: float = 0.0
    coupon_discount: float = 0.0
    tax: float = 0.0
    final_total: float = 0.0


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    user_id: str
    shipping_address: AddressSchema
    payment_method: str = Field(pattern="^(cod|card|upi|netbanking)$")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "shipping_address": {
                        "full_name": "Asha Rao",
                        "phone": "9800000000",
                        "line1": "12 MG Road",
                        "city": "Bengaluru",
                        "postal_code": "560001",
                    },
                    "payment_method": "upi",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    notes: str | None = None
    item_id: str | None = None
    seller_id: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ReturnOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    item_ids: list[str] | None = None


class RefundRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = Field(default=None, max_length=500)


class StatusEntryResponse(BaseModel):
    status: str
    timestamp: str
    notes: str = ""


class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    title: str | None = None
    seller_id: str | None = None
    product_type: str | None = None
    quantity: int
    unit_price: float
    discounted_unit_price: float | None = None
    line_discounted_total: float
    item_status: str
    estimated_delivery: str | None = None
    status_history: list[StatusEntryResponse] = []


class PriceSummaryResponse(BaseModel):
    subtotal: float
    item_discount: float
    combo_discount: float
    coupon_discount: float
    subtotal_after_discounts: float
    surcharge: float
    tax: float
    final_total: float
    currency: str


class PaymentInfoResponse(BaseModel):
    method: str
    status: str
    intent_id: str | None = None
    transaction_id: str | None = None
    refund_amount: float | None = None


class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    items: list[OrderItemResponse]
    status_history: list[StatusEntryResponse]
    price_summary: PriceSummaryResponse
    payment_info: PaymentInfoResponse
    coupon_code: str | None = None
    estimated_delivery_date: str | None = None
    timeline: dict[str, str | None] = {}


class PaymentIntentResponse(BaseModel):
    order_id: str
    intent_id: str
    client_secret: str
    amount: float
    currency: str
    reused: bool = False


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------
class WebhookRequest(BaseModel):
    type: str
    data: dict = {}

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "type": "payment_intent.succeeded",
                    "data": {"object": {"id": "pi_123", "metadata": {"order_id": "ORD-1700000000000-1234"}}},
                }
            ]
        }
    }
