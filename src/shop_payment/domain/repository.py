# src/shop_payment/domain/repository.py
"""Ledger and webhook-inbox Protocols — interface contracts for persistence.

Unit tests inject doubles that conform to these Protocols; the
infrastructure layer provides the raw SQL implementations.
"""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_payment.domain.models import Order, TransitionOutcome, WebhookEvent


class OrderLedgerProtocol(Protocol):
    async def create(self, order: Order, db: AsyncSession) -> Order: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def find_by_provider_order_id(
        self, provider_order_id: str, db: AsyncSession
    ) -> Order | None: ...

    async def find_by_provider_payment_id(
        self, provider_payment_id: str, db: AsyncSession
    ) -> Order | None: ...

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: AsyncSession
    ) -> list[Order]: ...

    async def transition_to_paid(
        self, order_id: str, provider_payment_id: str, db: AsyncSession
    ) -> TransitionOutcome: ...

    async def transition_to_failed(
        self, order_id: str, db: AsyncSession
    ) -> TransitionOutcome: ...


class WebhookInboxProtocol(Protocol):
    async def enqueue(
        self,
        event_type: str,
        provider_payment_id: str,
        provider_order_id: str | None,
        amount_minor: int | None,
        payload: str,
        db: AsyncSession,
    ) -> int | None: ...

    async def get(self, event_id: int, db: AsyncSession) -> WebhookEvent | None: ...

    async def mark(
        self, event_id: int, status: str, error: str | None, db: AsyncSession
    ) -> None: ...
