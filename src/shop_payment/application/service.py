# src/shop_payment/application/service.py
"""PaymentReconciliationService — drives checkout to a single ledger outcome.

Three entry points converge on the order ledger:

  verify_payment   client callback right after hosted checkout (synchronous)
  accept_webhook / provider notification (asynchronous, may arrive before,
  process_webhook_event  after, or concurrently with the callback, or twice)
  create_cod_order cash on delivery, no provider involved

Convergence relies on the ledger's compare-and-set transitions only: both
paths reconcile the amount against the stored grand total and then race on
transition_to_paid / transition_to_failed. Whichever wins, paid is sticky.

Transaction ownership: each entry point commits its own unit of work. No order
row is written before the provider has been consulted.
"""
import logging
from dataclasses import replace
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shop_access.auth.dependencies import CallerIdentity
from src.shop_catalog.domain.repository import CatalogReaderProtocol
from src.shop_catalog.infrastructure.persistence import CatalogReader
from src.shop_common.enums import (
    PaymentMethod,
    PaymentStatus,
    WebhookEventStatus,
    WebhookEventType,
)
from src.shop_common.errors import (
    AmountMismatchError,
    CodIneligibleError,
    InvalidAmountError,
    OrderNotFoundError,
    PaymentFailedError,
    SignatureInvalidError,
)
from src.shop_common.identifiers import new_order_id, new_order_number, new_receipt_id
from src.shop_common.money import minor_to_display, to_minor_units
from src.shop_payment.application.schemas import (
    CreateCodOrderRequest,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    LineItemResponse,
    OrderDraftRequest,
    OrderListResponse,
    OrderPlacedResponse,
    OrderResponse,
    ShippingAddressRequest,
    VerifyPaymentRequest,
    WebhookEnvelope,
)
from src.shop_payment.domain.models import (
    LineItem,
    Order,
    OrderTotals,
    ShippingAddress,
    TransitionOutcome,
    WebhookEvent,
)
from src.shop_payment.domain.pricing import PricingPolicy, build_line_items
from src.shop_payment.domain.reconciler import reconcile
from src.shop_payment.domain.repository import OrderLedgerProtocol, WebhookInboxProtocol
from src.shop_payment.domain.signature import verify_payment_signature, verify_webhook_signature
from src.shop_payment.domain.state_machine import reconciliation_state
from src.shop_payment.infrastructure.gateway_client import PaymentGatewayClient
from src.shop_payment.infrastructure.persistence import OrderLedger
from src.shop_payment.infrastructure.webhook_events import WebhookInbox

logger = logging.getLogger(__name__)

_HANDLED_EVENTS = {e.value for e in WebhookEventType}


def _order_to_response(order: Order) -> OrderResponse:
    state = reconciliation_state(order)
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        items=[
            LineItemResponse(
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in order.items
        ],
        subtotal=order.subtotal,
        shipping_fee=order.shipping_fee,
        tax_amount=order.tax_amount,
        cod_charges=order.cod_charges,
        grand_total=order.grand_total,
        currency=order.currency,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        reconciliation_state=state.value if state else None,
        provider_order_id=order.provider_order_id,
        provider_payment_id=order.provider_payment_id,
        shipping_address=ShippingAddressRequest(**vars(order.shipping_address)),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _placed(order: Order) -> OrderPlacedResponse:
    return OrderPlacedResponse(order_id=order.id, order_number=order.order_number)


class PaymentReconciliationService:
    def __init__(
        self,
        gateway: PaymentGatewayClient,
        key_secret: str,
        webhook_secret: str,
        pricing: PricingPolicy,
        cod_max_order_total: Decimal,
        default_currency: str = "INR",
        ledger: OrderLedgerProtocol | None = None,
        inbox: WebhookInboxProtocol | None = None,
        catalog: CatalogReaderProtocol | None = None,
    ) -> None:
        if not key_secret or not webhook_secret:
            raise ValueError("Payment key secret and webhook secret must be configured")
        self._gateway = gateway
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._pricing = pricing
        self._cod_max_order_total = cod_max_order_total
        self._currency = default_currency
        self._ledger: OrderLedgerProtocol = ledger or OrderLedger()
        self._inbox: WebhookInboxProtocol = inbox or WebhookInbox()
        self._catalog: CatalogReaderProtocol = catalog or CatalogReader()

    # ------------------------------------------------------------------
    # Payment intent
    # ------------------------------------------------------------------

    async def create_payment_intent(
        self, req: CreatePaymentIntentRequest
    ) -> CreatePaymentIntentResponse:
        # Range check on the unrounded value; huge amounts cannot be quantized
        scaled = req.amount * 100
        low, high = self._gateway.min_amount_minor, self._gateway.max_amount_minor
        if not low <= scaled <= high:
            raise InvalidAmountError(int(scaled), low, high)
        amount_minor = to_minor_units(req.amount)
        receipt = req.receipt or new_receipt_id()
        intent = await self._gateway.create_intent(amount_minor, req.currency, receipt)
        logger.info(
            "Payment intent created: provider_order_id=%s amount_minor=%d receipt=%s",
            intent.provider_order_id,
            intent.amount_minor,
            intent.receipt,
        )
        return CreatePaymentIntentResponse(
            provider_order_id=intent.provider_order_id,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
            receipt=intent.receipt,
            status=intent.status,
        )

    # ------------------------------------------------------------------
    # Synchronous callback
    # ------------------------------------------------------------------

    async def verify_payment(
        self, req: VerifyPaymentRequest, identity: CallerIdentity, db: AsyncSession
    ) -> OrderPlacedResponse:
        if not verify_payment_signature(
            req.provider_order_id, req.provider_payment_id, req.signature, self._key_secret
        ):
            logger.warning(
                "Payment signature rejected: provider_order_id=%s provider_payment_id=%s user=%s",
                req.provider_order_id,
                req.provider_payment_id,
                identity.id,
            )
            raise SignatureInvalidError()

        existing = await self._ledger.find_by_provider_order_id(req.provider_order_id, db)
        if existing is not None:
            self._ensure_owner(existing, identity)
            if existing.is_paid:
                return _placed(existing)
            if existing.payment_status == PaymentStatus.FAILED.value:
                raise PaymentFailedError(existing.id)
            candidate = existing
        else:
            lines, totals = await self._price_draft(req.order, db, cash_on_delivery=False)
            candidate = self._new_order(
                identity,
                lines,
                totals,
                req.shipping_address,
                PaymentMethod.GATEWAY,
                PaymentStatus.PENDING,
                provider_order_id=req.provider_order_id,
                provider_payment_id=req.provider_payment_id,
            )

        intent = await self._gateway.fetch_intent(req.provider_order_id)

        try:
            if existing is not None:
                order = candidate
            else:
                order = await self._ledger.create(replace(candidate, receipt=intent.receipt), db)
            self._ensure_owner(order, identity)
            check = reconcile(order.grand_total, intent.amount_minor)
            if check.ok:
                outcome = await self._ledger.transition_to_paid(
                    order.id, req.provider_payment_id, db
                )
            else:
                outcome = await self._ledger.transition_to_failed(order.id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if not check.ok:
            logger.warning(
                "Payment amount mismatch: order=%s provider_order_id=%s expected=%s "
                "reported=%s user=%s outcome=%s",
                order.id,
                req.provider_order_id,
                minor_to_display(check.expected_minor, order.currency),
                minor_to_display(check.reported_minor, order.currency),
                identity.id,
                outcome.value,
            )
            if outcome == TransitionOutcome.ALREADY_PAID:
                return _placed(order)
            raise AmountMismatchError(check.expected_minor, check.reported_minor)

        if outcome in (TransitionOutcome.APPLIED, TransitionOutcome.ALREADY_PAID):
            logger.info(
                "Order paid via callback: order=%s provider_payment_id=%s outcome=%s",
                order.id,
                req.provider_payment_id,
                outcome.value,
            )
            return _placed(order)
        raise PaymentFailedError(order.id)

    # ------------------------------------------------------------------
    # Asynchronous webhook
    # ------------------------------------------------------------------

    async def accept_webhook(
        self, raw_body: bytes, signature: str | None, db: AsyncSession
    ) -> int | None:
        """Authenticate and durably record a delivery.

        Returns the inbox event id to process, or None when there is nothing
        to do (unhandled event type, duplicate delivery, unusable payload).
        """
        if not verify_webhook_signature(raw_body, signature, self._webhook_secret):
            logger.warning("Webhook signature rejected (%d bytes)", len(raw_body))
            raise SignatureInvalidError()

        try:
            envelope = WebhookEnvelope.model_validate_json(raw_body)
        except ValidationError:
            logger.error("Signed webhook body could not be parsed; dropping it", exc_info=True)
            return None

        if envelope.event not in _HANDLED_EVENTS:
            logger.info("Ignoring webhook event type %s", envelope.event)
            return None
        if envelope.payload.payment is None:
            logger.error("Webhook %s carries no payment entity; dropping it", envelope.event)
            return None

        entity = envelope.payload.payment.entity
        try:
            event_id = await self._inbox.enqueue(
                envelope.event,
                entity.id,
                entity.order_id,
                entity.amount,
                raw_body.decode("utf-8"),
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if event_id is None:
            logger.info(
                "Duplicate webhook delivery: event=%s provider_payment_id=%s",
                envelope.event,
                entity.id,
            )
        return event_id

    async def process_webhook_event(
        self, event_id: int, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Background step after the provider has been acknowledged.

        Never raises: processing errors are logged and the inbox row is marked
        FAILED for later inspection or replay. If even that write fails, the
        row stays RECEIVED and the failure is logged.
        """
        async with session_factory() as db:
            try:
                event = await self._inbox.get(event_id, db)
            except Exception:
                logger.exception("Webhook event %s could not be loaded", event_id)
                return
            if event is None:
                logger.error("Webhook event %s vanished before processing", event_id)
                return
            try:
                status = await self.apply_webhook_event(event, db)
                await self._inbox.mark(event.id, status.value, None, db)
                await db.commit()
            except Exception as exc:
                await db.rollback()
                logger.exception(
                    "Webhook event %s (%s, %s) failed",
                    event.id,
                    event.event_type,
                    event.provider_payment_id,
                )
                try:
                    await self._inbox.mark(
                        event.id, WebhookEventStatus.FAILED.value, str(exc)[:500], db
                    )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    logger.exception("Could not record failure of webhook event %s", event.id)

    async def apply_webhook_event(
        self, event: WebhookEvent, db: AsyncSession
    ) -> WebhookEventStatus:
        """Apply one recorded event to the ledger. The caller commits."""
        order = await self._ledger.find_by_provider_payment_id(event.provider_payment_id, db)
        if order is None and event.provider_order_id:
            order = await self._ledger.find_by_provider_order_id(event.provider_order_id, db)
        if order is None:
            # Callback has not created the order yet; it will settle the payment itself.
            logger.info(
                "Webhook %s for unknown order: provider_order_id=%s provider_payment_id=%s",
                event.event_type,
                event.provider_order_id,
                event.provider_payment_id,
            )
            return WebhookEventStatus.UNMATCHED

        if event.event_type == WebhookEventType.PAYMENT_CAPTURED.value:
            if event.amount_minor is None:
                logger.error("payment.captured without amount for order %s", order.id)
                return WebhookEventStatus.FAILED
            check = reconcile(order.grand_total, event.amount_minor)
            if check.ok:
                outcome = await self._ledger.transition_to_paid(
                    order.id, event.provider_payment_id, db
                )
            else:
                logger.warning(
                    "Webhook amount mismatch: order=%s expected=%s reported=%s",
                    order.id,
                    minor_to_display(check.expected_minor, order.currency),
                    minor_to_display(check.reported_minor, order.currency),
                )
                outcome = await self._ledger.transition_to_failed(order.id, db)
        else:
            outcome = await self._ledger.transition_to_failed(order.id, db)

        logger.info(
            "Webhook %s applied: order=%s provider_payment_id=%s outcome=%s",
            event.event_type,
            order.id,
            event.provider_payment_id,
            outcome.value,
        )
        return WebhookEventStatus.PROCESSED

    # ------------------------------------------------------------------
    # Cash on delivery
    # ------------------------------------------------------------------

    async def create_cod_order(
        self, req: CreateCodOrderRequest, identity: CallerIdentity, db: AsyncSession
    ) -> OrderPlacedResponse:
        lines, totals = await self._price_draft(req.order, db, cash_on_delivery=True)
        if totals.grand_total > self._cod_max_order_total:
            raise CodIneligibleError(str(totals.grand_total), str(self._cod_max_order_total))

        candidate = self._new_order(
            identity,
            lines,
            totals,
            req.shipping_address,
            PaymentMethod.CASH_ON_DELIVERY,
            PaymentStatus.COD,
        )
        try:
            order = await self._ledger.create(candidate, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("COD order created: order=%s total=%s", order.id, order.grand_total)
        return _placed(order)

    # ------------------------------------------------------------------
    # Order history
    # ------------------------------------------------------------------

    async def get_order(
        self, order_id: str, identity: CallerIdentity, db: AsyncSession
    ) -> OrderResponse:
        order = await self._ledger.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        self._ensure_owner(order, identity)
        return _order_to_response(order)

    async def list_orders(
        self, identity: CallerIdentity, limit: int, cursor: str | None, db: AsyncSession
    ) -> OrderListResponse:
        orders = await self._ledger.list_by_user(identity.id, limit + 1, cursor, db)
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[_order_to_response(o) for o in page],
            next_cursor=page[-1].id if has_more else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _price_draft(
        self, draft: OrderDraftRequest, db: AsyncSession, cash_on_delivery: bool
    ) -> tuple[list[LineItem], OrderTotals]:
        requested = [(item.product_id, item.quantity) for item in draft.items]
        products = await self._catalog.get_products([pid for pid, _ in requested], db)
        lines = build_line_items(requested, products)
        return lines, self._pricing.price(lines, cash_on_delivery=cash_on_delivery)

    def _new_order(
        self,
        identity: CallerIdentity,
        lines: list[LineItem],
        totals: OrderTotals,
        address: ShippingAddressRequest,
        method: PaymentMethod,
        payment_status: PaymentStatus,
        provider_order_id: str | None = None,
        provider_payment_id: str | None = None,
    ) -> Order:
        return Order(
            id=new_order_id(),
            order_number=new_order_number(),
            user_id=identity.id,
            items=lines,
            subtotal=totals.subtotal,
            shipping_fee=totals.shipping_fee,
            tax_amount=totals.tax_amount,
            cod_charges=totals.cod_charges,
            grand_total=totals.grand_total,
            payment_method=method.value,
            payment_status=payment_status.value,
            shipping_address=ShippingAddress(**address.model_dump()),
            currency=self._currency,
            provider_order_id=provider_order_id,
            provider_payment_id=provider_payment_id,
        )

    @staticmethod
    def _ensure_owner(order: Order, identity: CallerIdentity) -> None:
        # Someone else's order is reported as missing rather than forbidden
        if order.user_id != identity.id:
            raise OrderNotFoundError(order.id)
