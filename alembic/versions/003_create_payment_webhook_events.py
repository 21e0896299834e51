"""003: create payment_webhook_events table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payment_webhook_events (
            id                  BIGSERIAL       PRIMARY KEY,
            event_type          VARCHAR(40)     NOT NULL,
            provider_payment_id VARCHAR(64)     NOT NULL,
            provider_order_id   VARCHAR(64),
            amount_minor        BIGINT,
            payload             JSONB           NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'RECEIVED',
            error               TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            processed_at        TIMESTAMPTZ,
            CONSTRAINT uq_webhook_payment_event UNIQUE (provider_payment_id, event_type),
            CONSTRAINT ck_webhook_status CHECK (
                status IN ('RECEIVED', 'PROCESSED', 'UNMATCHED', 'FAILED')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_webhook_events_pending
        ON payment_webhook_events (created_at)
        WHERE status IN ('RECEIVED', 'FAILED');
    """)
    op.execute("COMMENT ON TABLE payment_webhook_events IS 'Durable inbox of signed provider webhook deliveries';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_webhook_events CASCADE;")
