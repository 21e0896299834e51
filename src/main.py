"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.shop_access.middleware.rate_limit import RateLimitMiddleware
from src.shop_access.middleware.request_log import RequestLogMiddleware
from src.shop_common.database import engine, ping_database
from src.shop_common.errors import AppError
from src.shop_common.redis_client import close_redis, ping_redis
from src.shop_common.response import error_response
from src.shop_payment.api.router import orders_router
from src.shop_payment.api.router import router as payment_router
from src.shop_payment.application.service import PaymentReconciliationService
from src.shop_payment.domain.pricing import PricingPolicy
from src.shop_payment.infrastructure.gateway_client import PaymentGatewayClient


def build_payment_service() -> tuple[PaymentReconciliationService, PaymentGatewayClient]:
    """Wire the payment core from settings. Missing secrets fail here, at startup."""
    gateway = PaymentGatewayClient(
        base_url=settings.PAYMENT_API_BASE_URL,
        key_id=settings.PAYMENT_KEY_ID,
        key_secret=settings.PAYMENT_KEY_SECRET,
        timeout_seconds=settings.PAYMENT_TIMEOUT_SECONDS,
        min_amount_minor=settings.PAYMENT_MIN_AMOUNT_MINOR,
        max_amount_minor=settings.PAYMENT_MAX_AMOUNT_MINOR,
    )
    service = PaymentReconciliationService(
        gateway=gateway,
        key_secret=settings.PAYMENT_KEY_SECRET,
        webhook_secret=settings.PAYMENT_WEBHOOK_SECRET,
        pricing=PricingPolicy(
            shipping_fee=settings.SHIPPING_FEE,
            free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
            tax_rate_percent=settings.TAX_RATE_PERCENT,
            cod_surcharge=settings.COD_SURCHARGE,
        ),
        cod_max_order_total=settings.COD_MAX_ORDER_TOTAL,
        default_currency=settings.DEFAULT_CURRENCY,
    )
    return service, gateway


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, build payment core. Shutdown: dispose."""
    # Startup
    await ping_database()
    await ping_redis()
    app.state.payment_service, gateway = build_payment_service()
    yield
    # Shutdown
    await gateway.aclose()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RateLimitMiddleware, limit_per_minute=settings.PAYMENT_RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(payment_router, prefix="/api/v1")
app.include_router(orders_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
