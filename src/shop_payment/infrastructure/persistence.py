# src/shop_payment/infrastructure/persistence.py
"""OrderLedger — raw SQL persistence for the orders table.

Payment transitions are single conditional UPDATE ... RETURNING statements.
PostgreSQL's row lock makes the WHERE payment_status = 'pending' guard a
compare-and-set: when the synchronous verify call and a webhook race on the
same order, exactly one UPDATE returns a row. Zero rows means the guard
failed and the current row decides the outcome.

Transaction ownership: the CALLER commits or rolls back.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_common.enums import PaymentStatus
from src.shop_common.errors import InvalidOrderError
from src.shop_payment.domain.models import LineItem, Order, ShippingAddress, TransitionOutcome

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, order_number, user_id, items, subtotal, shipping_fee, tax_amount,
    cod_charges, grand_total, currency, receipt, provider_order_id,
    provider_payment_id, status, payment_status, payment_method,
    shipping_address, created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (id, order_number, user_id, items,
        subtotal, shipping_fee, tax_amount, cod_charges, grand_total,
        currency, receipt, provider_order_id, provider_payment_id,
        status, payment_status, payment_method, shipping_address)
    VALUES (:id, :order_number, :user_id, CAST(:items AS JSONB),
        :subtotal, :shipping_fee, :tax_amount, :cod_charges, :grand_total,
        :currency, :receipt, :provider_order_id, :provider_payment_id,
        :status, :payment_status, :payment_method, CAST(:shipping_address AS JSONB))
    ON CONFLICT (provider_order_id) DO NOTHING
    RETURNING {_SELECT_COLUMNS}
""")

_MARK_PAID_SQL = text("""
    UPDATE orders
    SET payment_status = 'paid',
        provider_payment_id = :provider_payment_id,
        updated_at = NOW()
    WHERE id = :id
      AND payment_method = 'gateway'
      AND payment_status = 'pending'
    RETURNING id
""")

_MARK_FAILED_SQL = text("""
    UPDATE orders
    SET payment_status = 'failed',
        updated_at = NOW()
    WHERE id = :id
      AND payment_method = 'gateway'
      AND payment_status = 'pending'
    RETURNING id
""")

_GET_PAYMENT_STATE_SQL = text("""
    SELECT payment_status, provider_payment_id FROM orders WHERE id = :id
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_GET_ORDER_BY_PROVIDER_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE provider_order_id = :provider_order_id
""")

_GET_ORDER_BY_PROVIDER_PAYMENT_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE provider_payment_id = :provider_payment_id
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS TEXT) IS NULL
           OR created_at < (SELECT created_at FROM orders WHERE id = :cursor_id))
    ORDER BY created_at DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _load_json(value: Any) -> Any:
    # asyncpg hands JSONB back as str unless a codec is registered
    return json.loads(value) if isinstance(value, str) else value


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=str(row.id),
        order_number=row.order_number,
        user_id=row.user_id,
        items=[LineItem.from_dict(item) for item in _load_json(row.items)],
        subtotal=row.subtotal,
        shipping_fee=row.shipping_fee,
        tax_amount=row.tax_amount,
        cod_charges=row.cod_charges,
        grand_total=row.grand_total,
        currency=row.currency,
        receipt=row.receipt,
        provider_order_id=row.provider_order_id,
        provider_payment_id=row.provider_payment_id,
        status=row.status,
        payment_status=row.payment_status,
        payment_method=row.payment_method,
        shipping_address=ShippingAddress(**_load_json(row.shipping_address)),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _order_params(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "items": json.dumps([item.to_dict() for item in order.items]),
        "subtotal": order.subtotal,
        "shipping_fee": order.shipping_fee,
        "tax_amount": order.tax_amount,
        "cod_charges": order.cod_charges,
        "grand_total": order.grand_total,
        "currency": order.currency,
        "receipt": order.receipt,
        "provider_order_id": order.provider_order_id,
        "provider_payment_id": order.provider_payment_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "shipping_address": json.dumps(vars(order.shipping_address)),
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderLedger:
    """Concrete implementation of OrderLedgerProtocol using raw SQL."""

    async def create(self, order: Order, db: AsyncSession) -> Order:
        """Insert a new order; idempotent per provider_order_id.

        If an order for the same provider_order_id already exists (concurrent
        or repeated verify call), that existing order is returned instead.
        """
        if not order.items:
            raise InvalidOrderError("order has no items")
        if not order.totals_are_consistent():
            raise InvalidOrderError(
                f"grand total {order.grand_total} does not match its components"
            )
        result = await db.execute(_INSERT_ORDER_SQL, _order_params(order))
        row = result.fetchone()
        if row is not None:
            return _row_to_order(row)

        existing = await self.find_by_provider_order_id(order.provider_order_id or "", db)
        if existing is None:
            raise InvalidOrderError(f"order {order.id} could not be stored")
        return existing

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def find_by_provider_order_id(
        self, provider_order_id: str, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(
            _GET_ORDER_BY_PROVIDER_ORDER_SQL, {"provider_order_id": provider_order_id}
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def find_by_provider_payment_id(
        self, provider_payment_id: str, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(
            _GET_ORDER_BY_PROVIDER_PAYMENT_SQL, {"provider_payment_id": provider_payment_id}
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: AsyncSession
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {"user_id": user_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def transition_to_paid(
        self, order_id: str, provider_payment_id: str, db: AsyncSession
    ) -> TransitionOutcome:
        result = await db.execute(
            _MARK_PAID_SQL, {"id": order_id, "provider_payment_id": provider_payment_id}
        )
        if result.fetchone() is not None:
            return TransitionOutcome.APPLIED
        return await self._outcome_for_rejected(order_id, db)

    async def transition_to_failed(
        self, order_id: str, db: AsyncSession
    ) -> TransitionOutcome:
        result = await db.execute(_MARK_FAILED_SQL, {"id": order_id})
        if result.fetchone() is not None:
            return TransitionOutcome.APPLIED
        return await self._outcome_for_rejected(order_id, db)

    async def _outcome_for_rejected(
        self, order_id: str, db: AsyncSession
    ) -> TransitionOutcome:
        result = await db.execute(_GET_PAYMENT_STATE_SQL, {"id": order_id})
        row = result.fetchone()
        if row is None:
            return TransitionOutcome.NOT_FOUND
        if row.payment_status == PaymentStatus.PAID.value:
            return TransitionOutcome.ALREADY_PAID
        if row.payment_status == PaymentStatus.FAILED.value:
            return TransitionOutcome.ALREADY_FAILED
        return TransitionOutcome.NOT_PENDING
