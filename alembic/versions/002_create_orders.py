"""002: create orders table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(36)     PRIMARY KEY,
            order_number        VARCHAR(32)     NOT NULL,
            user_id             VARCHAR(64)     NOT NULL,
            items               JSONB           NOT NULL,
            subtotal            NUMERIC(12, 2)  NOT NULL,
            shipping_fee        NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            tax_amount          NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            cod_charges         NUMERIC(12, 2)  NOT NULL DEFAULT 0,
            grand_total         NUMERIC(12, 2)  NOT NULL,
            currency            VARCHAR(3)      NOT NULL DEFAULT 'INR',
            receipt             VARCHAR(40),
            provider_order_id   VARCHAR(64),
            provider_payment_id VARCHAR(64),
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            payment_status      VARCHAR(20)     NOT NULL DEFAULT 'pending',
            payment_method      VARCHAR(20)     NOT NULL,
            shipping_address    JSONB           NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_number        UNIQUE (order_number),
            CONSTRAINT uq_orders_provider_order_id   UNIQUE (provider_order_id),
            CONSTRAINT uq_orders_provider_payment_id UNIQUE (provider_payment_id),
            CONSTRAINT ck_orders_money_gte_0         CHECK (
                subtotal >= 0 AND shipping_fee >= 0 AND tax_amount >= 0
                AND cod_charges >= 0 AND grand_total >= 0
            ),
            CONSTRAINT ck_orders_grand_total         CHECK (
                grand_total = subtotal + shipping_fee + tax_amount + cod_charges
            ),
            CONSTRAINT ck_orders_status              CHECK (
                status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')
            ),
            CONSTRAINT ck_orders_payment_status      CHECK (
                payment_status IN ('pending', 'paid', 'failed', 'cod')
            ),
            CONSTRAINT ck_orders_payment_method      CHECK (
                payment_method IN ('gateway', 'cash_on_delivery')
            ),
            CONSTRAINT ck_orders_method_status_match CHECK (
                (payment_method = 'cash_on_delivery' AND payment_status = 'cod'
                    AND provider_order_id IS NULL AND provider_payment_id IS NULL) OR
                (payment_method = 'gateway' AND payment_status IN ('pending', 'paid', 'failed'))
            ),
            CONSTRAINT ck_orders_paid_has_payment_id CHECK (
                payment_status <> 'paid' OR provider_payment_id IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_user_created ON orders (user_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    # grand_total and payment_method are fixed once the order exists
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_orders_freeze_totals()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.grand_total <> OLD.grand_total
               OR NEW.payment_method <> OLD.payment_method THEN
                RAISE EXCEPTION 'grand_total and payment_method are immutable (order %)', OLD.id;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_freeze_totals
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_orders_freeze_totals();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Order ledger, single source of truth for whether an order is paid';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_orders_freeze_totals();")
