"""PaymentGatewayClient — hosted-checkout provider (Razorpay Orders API).

Constructed once at startup with the merchant key pair and injected; there is
no module-level client. Every amount crossing this boundary is in integer
minor units.

Failure policy: transport errors, timeouts, non-2xx responses and malformed
bodies all become GatewayUnavailableError. Nothing is retried here; the
caller decides whether to retry the whole checkout.
"""
import logging
from typing import Any

import httpx

from src.shop_common.errors import GatewayUnavailableError, InvalidAmountError
from src.shop_payment.domain.models import IntentSnapshot, PaymentIntent

logger = logging.getLogger(__name__)


class PaymentGatewayClient:
    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout_seconds: float = 10.0,
        min_amount_minor: int = 100,
        max_amount_minor: int = 100_000_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not key_id or not key_secret:
            raise ValueError("Payment gateway key id and secret must be configured")
        self.min_amount_minor = min_amount_minor
        self.max_amount_minor = max_amount_minor
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def validate_amount(self, amount_minor: int) -> None:
        if not self.min_amount_minor <= amount_minor <= self.max_amount_minor:
            raise InvalidAmountError(amount_minor, self.min_amount_minor, self.max_amount_minor)

    async def create_intent(
        self, amount_minor: int, currency: str, receipt: str
    ) -> PaymentIntent:
        """Create a provider order for amount_minor. Rejects out-of-range amounts locally."""
        self.validate_amount(amount_minor)
        body = await self._request(
            "POST",
            "/orders",
            json={"amount": amount_minor, "currency": currency, "receipt": receipt},
        )
        try:
            return PaymentIntent(
                provider_order_id=str(body["id"]),
                amount_minor=int(body["amount"]),
                currency=str(body.get("currency", currency)),
                receipt=str(body.get("receipt") or receipt),
                status=str(body.get("status", "created")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayUnavailableError("Malformed response from payment provider") from exc

    async def fetch_intent(self, provider_order_id: str) -> IntentSnapshot:
        body = await self._request("GET", f"/orders/{provider_order_id}")
        try:
            return IntentSnapshot(
                provider_order_id=str(body.get("id", provider_order_id)),
                amount_minor=int(body["amount"]),
                status=str(body.get("status", "")),
                receipt=body.get("receipt"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayUnavailableError("Malformed response from payment provider") from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("Payment provider timed out: %s %s", method, path)
            raise GatewayUnavailableError("Payment provider timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Payment provider rejected %s %s: %d %s",
                method,
                path,
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise GatewayUnavailableError(
                f"Payment provider returned {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Payment provider call failed: %s %s: %s", method, path, exc)
            raise GatewayUnavailableError() from exc
        if not isinstance(body, dict):
            raise GatewayUnavailableError("Malformed response from payment provider")
        return body
