# src/shop_payment/api/router.py
"""Payment and order-history endpoints.

The webhook endpoint is unauthenticated (the provider signs the body) and
answers 2xx only once the delivery is durably recorded; ledger work then runs
as a background task with its own session.
"""
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shop_access.auth.dependencies import CallerIdentity, get_current_identity
from src.shop_common.database import async_session_factory, get_db_session
from src.shop_payment.application.schemas import (
    CreateCodOrderRequest,
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    OrderListResponse,
    OrderPlacedResponse,
    OrderResponse,
    VerifyPaymentRequest,
    WebhookAckResponse,
)
from src.shop_payment.application.service import PaymentReconciliationService

router = APIRouter(prefix="/payment", tags=["payment"])
orders_router = APIRouter(prefix="/orders", tags=["orders"])


def get_payment_service(request: Request) -> PaymentReconciliationService:
    """The service is built once in the app lifespan and kept on app.state."""
    return request.app.state.payment_service


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


@router.post("/create-order", response_model=CreatePaymentIntentResponse)
async def create_payment_intent(
    req: CreatePaymentIntentRequest,
    current_user: Annotated[CallerIdentity, Depends(get_current_identity)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
) -> CreatePaymentIntentResponse:
    return await svc.create_payment_intent(req)


@router.post("/verify", response_model=OrderPlacedResponse)
async def verify_payment(
    req: VerifyPaymentRequest,
    current_user: Annotated[CallerIdentity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
) -> OrderPlacedResponse:
    return await svc.verify_payment(req, current_user, db)


@router.post("/cod", response_model=OrderPlacedResponse, status_code=201)
async def create_cod_order(
    req: CreateCodOrderRequest,
    current_user: Annotated[CallerIdentity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
) -> OrderPlacedResponse:
    return await svc.create_cod_order(req, current_user, db)


@router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> WebhookAckResponse:
    raw_body = await request.body()
    event_id = await svc.accept_webhook(raw_body, x_razorpay_signature, db)
    if event_id is not None:
        background_tasks.add_task(svc.process_webhook_event, event_id, session_factory)
    return WebhookAckResponse(received=True)


@orders_router.get("/mine", response_model=OrderListResponse)
async def list_my_orders(
    current_user: Annotated[CallerIdentity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(None, description="Pagination cursor (order ID)"),
) -> OrderListResponse:
    return await svc.list_orders(current_user, limit, cursor, db)


@orders_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: Annotated[CallerIdentity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    svc: Annotated[PaymentReconciliationService, Depends(get_payment_service)],
) -> OrderResponse:
    return await svc.get_order(order_id, current_user, db)
