"""Request logging middleware.

One line per HTTP request with method, path, status, latency and a short
request id. The id is put on request.state so the AppError handler can echo it
in ApiResponse, and is returned as X-Request-ID.

On payment and order paths the line also carries the caller id that
get_current_identity leaves on request.state, and non-2xx outcomes there are
logged at WARNING so failed checkouts stand out:

    INFO    [POST] /api/v1/payment/verify → 200 (23ms) req_a1b2c3d4e5f6 caller=user-42
    WARNING [POST] /api/v1/payment/verify → 400 (11ms) req_0f9e8d7c6b5a caller=user-42
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("shop.request")

_CHECKOUT_PREFIXES = ("/api/v1/payment", "/api/v1/orders")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        path = request.url.path
        if not path.startswith(_CHECKOUT_PREFIXES):
            logger.info(
                "[%s] %s → %d (%.0fms) %s",
                request.method,
                path,
                response.status_code,
                elapsed_ms,
                request_id,
            )
            return response

        level = logging.INFO if response.status_code < 400 else logging.WARNING
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s caller=%s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id,
            getattr(request.state, "caller_id", None) or "-",
        )
        return response
