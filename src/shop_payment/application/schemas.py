# src/shop_payment/application/schemas.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreatePaymentIntentRequest(BaseModel):
    amount: Decimal = Field(..., description="Amount in major currency units, e.g. 1500.00")
    currency: str = Field("INR", min_length=3, max_length=3)
    receipt: str | None = Field(None, max_length=40)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class CreatePaymentIntentResponse(BaseModel):
    provider_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str


class OrderItemRequest(BaseModel):
    """Clients choose products and quantities only; prices come from the catalog."""
    model_config = ConfigDict(extra="ignore")

    product_id: str
    quantity: int = Field(..., ge=1)


class OrderDraftRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[OrderItemRequest] = Field(..., min_length=1)


class ShippingAddressRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str = Field(..., min_length=6, max_length=20)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=3, max_length=12)
    country: str = "India"


class VerifyPaymentRequest(BaseModel):
    provider_order_id: str = Field(..., min_length=1)
    provider_payment_id: str = Field(..., min_length=1)
    signature: str
    order: OrderDraftRequest
    shipping_address: ShippingAddressRequest


class CreateCodOrderRequest(BaseModel):
    order: OrderDraftRequest
    shipping_address: ShippingAddressRequest


class OrderPlacedResponse(BaseModel):
    order_id: str
    order_number: str


class WebhookAckResponse(BaseModel):
    received: bool = True


class LineItemResponse(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal


class OrderResponse(BaseModel):
    id: str
    order_number: str
    items: list[LineItemResponse]
    subtotal: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    cod_charges: Decimal
    grand_total: Decimal
    currency: str
    status: str
    payment_status: str
    payment_method: str
    reconciliation_state: str | None = None
    provider_order_id: str | None = None
    provider_payment_id: str | None = None
    shipping_address: ShippingAddressRequest
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


# ---------------------------------------------------------------------------
# Provider webhook envelope (only the fields this service reads)
# ---------------------------------------------------------------------------


class WebhookPaymentEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    order_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    status: str | None = None


class WebhookPaymentWrapper(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entity: WebhookPaymentEntity


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payment: WebhookPaymentWrapper | None = None


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    payload: WebhookPayload = Field(default_factory=WebhookPayload)
