"""In-memory doubles for the payment core.

InMemoryLedger mirrors the SQL ledger's compare-and-set semantics: the
pending check and the write happen with no await in between, which is what
the conditional UPDATE guarantees in PostgreSQL. An explicit yield before each
transition lets concurrently gathered tasks interleave.
"""

import asyncio
import dataclasses
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_catalog.domain.models import ProductSnapshot
from src.shop_common.enums import PaymentStatus
from src.shop_payment.application.service import PaymentReconciliationService
from src.shop_payment.domain.models import (
    IntentSnapshot,
    Order,
    PaymentIntent,
    TransitionOutcome,
    WebhookEvent,
)
from src.shop_payment.domain.pricing import PricingPolicy

KEY_SECRET = "unit-key-secret"
WEBHOOK_SECRET = "unit-webhook-secret"


class InMemoryLedger:
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.paid_transitions = 0

    async def create(self, order: Order, db: AsyncSession) -> Order:
        await asyncio.sleep(0)
        if order.provider_order_id:
            for existing in self.orders.values():
                if existing.provider_order_id == order.provider_order_id:
                    return dataclasses.replace(existing)
        self.orders[order.id] = dataclasses.replace(order)
        return dataclasses.replace(order)

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        order = self.orders.get(order_id)
        return dataclasses.replace(order) if order else None

    async def find_by_provider_order_id(
        self, provider_order_id: str, db: AsyncSession
    ) -> Order | None:
        for order in self.orders.values():
            if order.provider_order_id == provider_order_id:
                return dataclasses.replace(order)
        return None

    async def find_by_provider_payment_id(
        self, provider_payment_id: str, db: AsyncSession
    ) -> Order | None:
        for order in self.orders.values():
            if order.provider_payment_id == provider_payment_id:
                return dataclasses.replace(order)
        return None

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: AsyncSession
    ) -> list[Order]:
        mine = [o for o in self.orders.values() if o.user_id == user_id]
        return mine[:limit]

    async def transition_to_paid(
        self, order_id: str, provider_payment_id: str, db: AsyncSession
    ) -> TransitionOutcome:
        await asyncio.sleep(0)
        order = self.orders.get(order_id)
        if order is None:
            return TransitionOutcome.NOT_FOUND
        if order.is_gateway and order.payment_status == PaymentStatus.PENDING.value:
            order.payment_status = PaymentStatus.PAID.value
            order.provider_payment_id = provider_payment_id
            self.paid_transitions += 1
            return TransitionOutcome.APPLIED
        return self._rejected(order)

    async def transition_to_failed(self, order_id: str, db: AsyncSession) -> TransitionOutcome:
        await asyncio.sleep(0)
        order = self.orders.get(order_id)
        if order is None:
            return TransitionOutcome.NOT_FOUND
        if order.is_gateway and order.payment_status == PaymentStatus.PENDING.value:
            order.payment_status = PaymentStatus.FAILED.value
            return TransitionOutcome.APPLIED
        return self._rejected(order)

    @staticmethod
    def _rejected(order: Order) -> TransitionOutcome:
        if order.payment_status == PaymentStatus.PAID.value:
            return TransitionOutcome.ALREADY_PAID
        if order.payment_status == PaymentStatus.FAILED.value:
            return TransitionOutcome.ALREADY_FAILED
        return TransitionOutcome.NOT_PENDING


class InMemoryInbox:
    def __init__(self) -> None:
        self.events: dict[int, WebhookEvent] = {}
        self._keys: set[tuple[str, str]] = set()

    async def enqueue(
        self,
        event_type: str,
        provider_payment_id: str,
        provider_order_id: str | None,
        amount_minor: int | None,
        payload: str,
        db: AsyncSession,
    ) -> int | None:
        key = (provider_payment_id, event_type)
        if key in self._keys:
            return None
        self._keys.add(key)
        event_id = len(self.events) + 1
        self.events[event_id] = WebhookEvent(
            id=event_id,
            event_type=event_type,
            provider_payment_id=provider_payment_id,
            provider_order_id=provider_order_id,
            amount_minor=amount_minor,
            status="RECEIVED",
        )
        return event_id

    async def get(self, event_id: int, db: AsyncSession) -> WebhookEvent | None:
        return self.events.get(event_id)

    async def mark(self, event_id: int, status: str, error: str | None, db: AsyncSession) -> None:
        self.events[event_id].status = status
        self.events[event_id].error = error


class StaticCatalog:
    def __init__(self, products: list[ProductSnapshot]) -> None:
        self.products = {p.id: p for p in products}

    async def get_products(
        self, product_ids: list[str], db: AsyncSession
    ) -> dict[str, ProductSnapshot]:
        return {pid: self.products[pid] for pid in product_ids if pid in self.products}


class StubGateway:
    """Provider stand-in: fetch_intent reports whatever amount the test sets."""

    def __init__(self, amount_minor: int = 150000) -> None:
        self.amount_minor = amount_minor
        self.min_amount_minor = 100
        self.max_amount_minor = 100_000_000
        self.fetch_calls = 0
        self.create_intent = AsyncMock(
            side_effect=lambda amount, currency, receipt: PaymentIntent(
                provider_order_id="order_TEST123",
                amount_minor=amount,
                currency=currency,
                receipt=receipt,
                status="created",
            )
        )

    async def fetch_intent(self, provider_order_id: str) -> IntentSnapshot:
        self.fetch_calls += 1
        await asyncio.sleep(0)
        return IntentSnapshot(
            provider_order_id=provider_order_id,
            amount_minor=self.amount_minor,
            status="paid",
            receipt="receipt_1",
        )


class SessionFactory:
    """Stands in for async_sessionmaker: `async with factory() as db`."""

    def __init__(self) -> None:
        self.session = AsyncMock()

    def __call__(self) -> "SessionFactory":
        return self

    async def __aenter__(self) -> AsyncMock:
        return self.session

    async def __aexit__(self, *exc: object) -> None:
        return None


# Zero shipping/tax keeps grand totals equal to the subtotal in scenarios.
FLAT_PRICING = PricingPolicy(
    shipping_fee=Decimal("0"),
    free_shipping_threshold=Decimal("0"),
    tax_rate_percent=Decimal("0"),
    cod_surcharge=Decimal("40.00"),
)


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def inbox() -> InMemoryInbox:
    return InMemoryInbox()


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog(
        [
            ProductSnapshot(id="p-lamp", name="Desk Lamp", unit_price=Decimal("1500.00"), stock=10),
            ProductSnapshot(id="p-sofa", name="Sofa", unit_price=Decimal("12000.00"), stock=2),
            ProductSnapshot(id="p-mug", name="Mug", unit_price=Decimal("250.00"), stock=0),
        ]
    )


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def session_factory() -> SessionFactory:
    return SessionFactory()


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(
    ledger: InMemoryLedger,
    inbox: InMemoryInbox,
    catalog: StaticCatalog,
    gateway: StubGateway,
) -> PaymentReconciliationService:
    return PaymentReconciliationService(
        gateway=gateway,  # type: ignore[arg-type]
        key_secret=KEY_SECRET,
        webhook_secret=WEBHOOK_SECRET,
        pricing=FLAT_PRICING,
        cod_max_order_total=Decimal("10000.00"),
        ledger=ledger,
        inbox=inbox,
        catalog=catalog,
    )
