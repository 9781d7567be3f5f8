from unittest.mock import AsyncMock

from httpx import AsyncClient

from api.main import app
from packages.billing.providers.payment.factory import get_payment_provider


class TestHealthEndpoints:
    """Integration tests for health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/api/v1/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "minutemeter-service"}

    async def test_db_health_check(self, client: AsyncClient):
        response = await client.get("/api/v1/health/db")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_gateway_health_check(self, client: AsyncClient, mock_payment_provider):
        app.dependency_overrides[get_payment_provider] = lambda: mock_payment_provider

        response = await client.get("/api/v1/health/gateway")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "gateway": "reachable"}

    async def test_gateway_unreachable(self, client: AsyncClient):
        provider = AsyncMock()
        provider.health_check = AsyncMock(return_value=False)
        app.dependency_overrides[get_payment_provider] = lambda: provider

        response = await client.get("/api/v1/health/gateway")

        assert response.json()["status"] == "unhealthy"

    async def test_root_liveness(self, client: AsyncClient):
        response = await client.get("/healthz")
        assert response.status_code == 200
