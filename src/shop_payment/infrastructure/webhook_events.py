"""WebhookInbox — durable store for provider webhook deliveries.

A delivery is acknowledged to the provider only after its row is committed.
(provider_payment_id, event_type) is unique, so redelivery of the same event
for the same payment inserts nothing and is not processed twice.
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_common.enums import WebhookEventStatus
from src.shop_payment.domain.models import WebhookEvent

_ENQUEUE_SQL = text("""
    INSERT INTO payment_webhook_events
        (event_type, provider_payment_id, provider_order_id, amount_minor, payload, status)
    VALUES
        (:event_type, :provider_payment_id, :provider_order_id, :amount_minor,
         CAST(:payload AS JSONB), :status)
    ON CONFLICT (provider_payment_id, event_type) DO NOTHING
    RETURNING id
""")

_GET_SQL = text("""
    SELECT id, event_type, provider_payment_id, provider_order_id, amount_minor,
           status, error, created_at
    FROM payment_webhook_events
    WHERE id = :id
""")

_MARK_SQL = text("""
    UPDATE payment_webhook_events
    SET status = :status, error = :error, processed_at = NOW()
    WHERE id = :id
""")


def _row_to_event(row: Any) -> WebhookEvent:
    return WebhookEvent(
        id=row.id,
        event_type=row.event_type,
        provider_payment_id=row.provider_payment_id,
        provider_order_id=row.provider_order_id,
        amount_minor=row.amount_minor,
        status=row.status,
        error=row.error,
        created_at=row.created_at,
    )


class WebhookInbox:
    """Concrete implementation of WebhookInboxProtocol using raw SQL."""

    async def enqueue(
        self,
        event_type: str,
        provider_payment_id: str,
        provider_order_id: str | None,
        amount_minor: int | None,
        payload: str,
        db: AsyncSession,
    ) -> int | None:
        """Insert the event; returns its id, or None for a duplicate delivery."""
        result = await db.execute(
            _ENQUEUE_SQL,
            {
                "event_type": event_type,
                "provider_payment_id": provider_payment_id,
                "provider_order_id": provider_order_id,
                "amount_minor": amount_minor,
                "payload": payload,
                "status": WebhookEventStatus.RECEIVED.value,
            },
        )
        row = result.fetchone()
        return row.id if row else None

    async def get(self, event_id: int, db: AsyncSession) -> WebhookEvent | None:
        result = await db.execute(_GET_SQL, {"id": event_id})
        row = result.fetchone()
        return _row_to_event(row) if row else None

    async def mark(
        self, event_id: int, status: str, error: str | None, db: AsyncSession
    ) -> None:
        await db.execute(_MARK_SQL, {"id": event_id, "status": status, "error": error})
