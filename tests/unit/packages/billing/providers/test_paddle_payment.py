import json

import httpx
import pytest

from packages.billing.exceptions import GatewayError
from packages.billing.providers.payment.paddle_payment import PaddlePaymentProvider


def provider_with(handler) -> PaddlePaymentProvider:
    return PaddlePaymentProvider(
        api_url="https://sandbox-api.paddle.test/",
        api_key="pdl_test_key",
        timeout_seconds=2,
        transport=httpx.MockTransport(handler),
    )


class TestPaddlePaymentProvider:
    async def test_charge_posts_one_time_charge(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"data": {"id": "sub_123", "status": "active"}},
                headers={"request-id": "req_abc"},
            )

        result = await provider_with(handler).charge_usage("sub_123", "pri_usage", 363)

        assert seen["url"] == "https://sandbox-api.paddle.test/subscriptions/sub_123/charge"
        assert seen["auth"] == "Bearer pdl_test_key"
        assert seen["body"] == {
            "effective_from": "immediately",
            "items": [{"price_id": "pri_usage", "quantity": 363}],
        }
        assert result.reference == "req_abc"
        assert result.status == "active"

    async def test_rejection_raises_with_status(self):
        provider = provider_with(lambda request: httpx.Response(422, json={"error": {}}))

        with pytest.raises(GatewayError) as exc_info:
            await provider.charge_usage("sub_123", "pri_usage", 100)

        assert exc_info.value.status_code == 422
        assert exc_info.value.outcome_unknown is False

    async def test_timeout_raises_gateway_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await provider_with(handler).charge_usage("sub_123", "pri_usage", 100)

        assert exc_info.value.outcome_unknown is True

    async def test_unreachable_gateway_charged_nothing(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await provider_with(handler).charge_usage("sub_123", "pri_usage", 100)

        assert exc_info.value.outcome_unknown is False

    async def test_non_positive_quantity_refused(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(GatewayError):
            await provider_with(handler).charge_usage("sub_123", "pri_usage", 0)

    async def test_health_check(self):
        healthy = provider_with(lambda request: httpx.Response(200, json={"data": []}))
        down = provider_with(lambda request: httpx.Response(503))

        def unreachable(request):
            raise httpx.ConnectError("refused", request=request)

        assert await healthy.health_check() is True
        assert await down.health_check() is False
        assert await provider_with(unreachable).health_check() is False
