from datetime import timedelta

import pytest
from httpx import AsyncClient

from api.main import app
from common.core.clock import utcnow
from common.core.config import settings
from packages.billing.models.domain.enums import AgentStatus
from packages.billing.models.domain.usage import UsageEntryCreate
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository
from packages.billing.routes.cron import get_billing_sweep_service
from packages.billing.services.billing_sweep import BillingSweepService
from packages.billing.services.charge_service import ChargeService

CRON_URL = "/api/v1/billing/cron"


@pytest.fixture
def sweep_service(mock_payment_provider, plan_catalog):
    service = BillingSweepService(
        charge_service=ChargeService(
            payment_provider=mock_payment_provider, catalog=plan_catalog
        )
    )
    app.dependency_overrides[get_billing_sweep_service] = lambda: service
    return service


class TestCronAuth:
    async def test_unconfigured_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", None)

        response = await client.post(f"{CRON_URL}/enforce")

        assert response.status_code == 503

    async def test_missing_bearer(self, client: AsyncClient, cron_secret):
        response = await client.post(f"{CRON_URL}/enforce")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_wrong_secret(self, client: AsyncClient, cron_secret):
        response = await client.post(
            f"{CRON_URL}/sweep", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401


class TestCronStages:
    @pytest.fixture
    def auth(self, cron_secret):
        return {"Authorization": f"Bearer {cron_secret}"}

    async def test_finalize_charge_enforce(
        self, client: AsyncClient, auth, sweep_service, mock_payment_provider, sample_client
    ):
        await UsageEntryRepository().upsert(
            UsageEntryCreate(
                client_id=sample_client.id,
                external_call_id="call-cron",
                duration_seconds=750,
                created_at=utcnow() - timedelta(days=3),
            )
        )

        finalize = await client.post(f"{CRON_URL}/finalize", headers=auth)
        charge = await client.post(f"{CRON_URL}/charge", headers=auth)
        enforce = await client.post(f"{CRON_URL}/enforce", headers=auth)

        assert finalize.status_code == 200
        assert finalize.json()["created"] == 1
        assert charge.json()["charged"] == 1
        mock_payment_provider.charge_usage.assert_awaited_once()
        # Grace period still running
        assert enforce.json()["paused"] == 0
        assert enforce.json()["skipped"] == 1

    async def test_sweep_report(self, client: AsyncClient, auth, sweep_service, sample_client):
        await ClientRepository().set_usage_due_at(sample_client.id, utcnow() - timedelta(hours=1))

        response = await client.post(f"{CRON_URL}/sweep", headers=auth)

        assert response.status_code == 200
        report = response.json()
        assert report["enforce"]["paused"] == 1
        assert report["finished_at"] is not None
        client_row = await ClientRepository().get(sample_client.id)
        assert client_row.agent_status == AgentStatus.PAUSED
