"""Rate limiting middleware for payment endpoints.

Fixed-window counter per client IP:
  - Key pattern: "ratelimit:payment:{client_ip}:{window}"
  - Window: 60 seconds, limit from settings.PAYMENT_RATE_LIMIT_PER_MINUTE
  - Client IP taken from the first X-Forwarded-For hop when present

Only paths under the configured prefix are counted; the webhook endpoint is
exempt because the provider retries from a small set of addresses.
A Redis outage fails open (logged) so checkout keeps working.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from src.shop_common.errors import RateLimitError
from src.shop_common.redis_client import get_redis
from src.shop_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limit_per_minute: int,
        path_prefix: str = "/api/v1/payment",
        exempt_paths: tuple[str, ...] = ("/api/v1/payment/webhook",),
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        super().__init__(app)
        self._limit = limit_per_minute
        self._prefix = path_prefix
        self._exempt = exempt_paths
        self._redis_getter = redis_getter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not path.startswith(self._prefix) or path in self._exempt:
            return await call_next(request)

        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:payment:{client_ip(request)}:{window}"
        try:
            redis = await self._redis_getter()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing request to %s", path, exc_info=True)
            return await call_next(request)

        if count > self._limit:
            err = RateLimitError()
            retry_after = _WINDOW_SECONDS - int(time.time()) % _WINDOW_SECONDS
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
