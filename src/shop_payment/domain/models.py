"""Order ledger domain model — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.shop_common.enums import FulfillmentStatus, PaymentMethod, PaymentStatus


@dataclass(frozen=True)
class LineItem:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal  # captured from the catalog at order time

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, object]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LineItem":
        return cls(
            product_id=str(data["product_id"]),
            name=str(data.get("name", "")),
            quantity=int(data["quantity"]),  # type: ignore[call-overload]
            unit_price=Decimal(str(data["unit_price"])),
        )


@dataclass(frozen=True)
class ShippingAddress:
    name: str
    email: str
    phone: str
    street: str
    city: str
    state: str
    pincode: str
    country: str = "India"


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    cod_charges: Decimal
    grand_total: Decimal


@dataclass
class Order:
    id: str
    order_number: str
    user_id: str
    items: list[LineItem]
    # Money, major units
    subtotal: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    cod_charges: Decimal
    grand_total: Decimal
    payment_method: str  # gateway / cash_on_delivery
    shipping_address: ShippingAddress
    currency: str = "INR"
    receipt: str | None = None
    # Provider linkage
    provider_order_id: str | None = None
    provider_payment_id: str | None = None
    # Lifecycle
    status: str = FulfillmentStatus.PENDING.value
    payment_status: str = PaymentStatus.PENDING.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_gateway(self) -> bool:
        return self.payment_method == PaymentMethod.GATEWAY.value

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def totals_are_consistent(self) -> bool:
        parts = (self.subtotal, self.shipping_fee, self.tax_amount, self.cod_charges)
        if any(p < 0 for p in parts) or self.grand_total < 0:
            return False
        return sum(parts, Decimal("0")) == self.grand_total


class TransitionOutcome(str, Enum):
    """Result of a compare-and-set payment transition on the ledger."""
    APPLIED = "APPLIED"
    ALREADY_PAID = "ALREADY_PAID"  # idempotent success, not an error
    ALREADY_FAILED = "ALREADY_FAILED"
    NOT_PENDING = "NOT_PENDING"  # COD orders never take gateway transitions
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class PaymentIntent:
    provider_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str


@dataclass(frozen=True)
class IntentSnapshot:
    provider_order_id: str
    amount_minor: int
    status: str
    receipt: str | None


@dataclass
class WebhookEvent:
    id: int
    event_type: str
    provider_payment_id: str
    provider_order_id: str | None
    amount_minor: int | None
    status: str
    error: str | None = None
    created_at: datetime | None = None
