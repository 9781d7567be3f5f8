"""
Paddle Billing implementation of the payment provider.
"""

from typing import Optional

import httpx

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.exceptions import GatewayError
from packages.billing.providers.payment.interface import (
    ChargeResult,
    PaymentProviderInterface,
)

logger = get_logger(__name__)


class PaddlePaymentProvider(PaymentProviderInterface):
    """Paddle Billing API client using bounded httpx timeouts."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (api_url or settings.gateway_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.gateway_api_key
        self.timeout = httpx.Timeout(
            timeout_seconds
            if timeout_seconds is not None
            else settings.gateway_timeout_seconds
        )
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    @trace_span
    async def charge_usage(
        self,
        subscription_id: str,
        price_id: str,
        quantity: int,
    ) -> ChargeResult:
        """
        Create a one-time charge billed immediately on the subscription.

        Paddle collects it with the subscription's saved payment method.
        """
        if quantity <= 0:
            raise GatewayError(f"Refusing to charge non-positive quantity {quantity}")

        payload = {
            "effective_from": "immediately",
            "items": [{"price_id": price_id, "quantity": quantity}],
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/subscriptions/{subscription_id}/charge", json=payload
                )
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise GatewayError(f"Gateway unreachable charging {subscription_id}: {e}") from e
        except httpx.TimeoutException as e:
            raise GatewayError(
                f"Gateway timed out charging {subscription_id}", outcome_unknown=True
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway request failed: {e}", outcome_unknown=True) from e

        if response.status_code >= 400:
            logger.error(
                f"Gateway rejected usage charge for {subscription_id}",
                extra={
                    "subscription_id": subscription_id,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                },
            )
            raise GatewayError(
                f"Gateway rejected charge with status {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json().get("data") or {}
        return ChargeResult(
            subscription_id=data.get("id") or subscription_id,
            reference=response.headers.get("request-id") or data.get("id"),
            status=data.get("status"),
        )

    async def health_check(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/event-types")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Gateway health check failed: {e}")
            return False
