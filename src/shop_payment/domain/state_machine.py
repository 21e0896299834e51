"""Reconciliation state of a gateway order, derived from its ledger row.

    CREATED ──(verified signal)──► VERIFIED_PENDING ──► PAID
        │                               │
        └──────────────► FAILED ◄───────┘
    CANCELLED: fulfillment cancelled before payment was confirmed

PAID is terminal and sticky: a late payment.failed never moves it.
"""
from enum import Enum

from src.shop_common.enums import FulfillmentStatus, PaymentMethod, PaymentStatus
from src.shop_payment.domain.models import Order


class ReconciliationState(str, Enum):
    CREATED = "CREATED"
    VERIFIED_PENDING = "VERIFIED_PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


def reconciliation_state(order: Order) -> ReconciliationState | None:
    """Map a ledger row to its reconciliation state; None for COD orders."""
    if order.payment_method != PaymentMethod.GATEWAY.value:
        return None
    if order.payment_status == PaymentStatus.PAID.value:
        return ReconciliationState.PAID
    if order.payment_status == PaymentStatus.FAILED.value:
        return ReconciliationState.FAILED
    if order.status == FulfillmentStatus.CANCELLED.value:
        return ReconciliationState.CANCELLED
    if order.provider_payment_id:
        return ReconciliationState.VERIFIED_PENDING
    return ReconciliationState.CREATED
