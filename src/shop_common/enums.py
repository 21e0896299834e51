"""Global enums — must match DB CHECK constraints exactly.

Values are the lowercase strings stored in the orders table.
"""

from enum import Enum


class FulfillmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    COD = "cod"


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    CASH_ON_DELIVERY = "cash_on_delivery"


class WebhookEventType(str, Enum):
    """Provider events this service acts on; anything else is acknowledged and dropped."""
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"


class WebhookEventStatus(str, Enum):
    RECEIVED = "RECEIVED"
    PROCESSED = "PROCESSED"
    UNMATCHED = "UNMATCHED"
    FAILED = "FAILED"
