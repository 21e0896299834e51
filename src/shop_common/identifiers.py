"""Business identifiers: order ids, order numbers, provider receipts."""

import secrets
import time
import uuid
from datetime import UTC, datetime


def new_order_id() -> str:
    return str(uuid.uuid4())


def new_order_number() -> str:
    """Customer-facing order number: ORD-20261017-7F3A9C2E.

    Uniqueness is enforced by the orders.order_number constraint; 32 random bits
    per day keep collisions negligible at this scale.
    """
    today = datetime.now(UTC).strftime("%Y%m%d")
    return f"ORD-{today}-{secrets.token_hex(4).upper()}"


def new_receipt_id() -> str:
    """Default provider receipt: receipt_<epoch ms>."""
    return f"receipt_{int(time.time() * 1000)}"
