import time
from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from api.main import app
from common.core.clock import utcnow
from common.core.config import settings
from packages.billing.models.domain.enums import (
    AgentStatus,
    InvoiceStatus,
    PaymentKind,
    PlanKey,
    RenewalStatus,
)
from packages.billing.models.domain.invoice import UsageInvoiceCreate
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.repositories.payment_repository import PaymentRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository
from packages.billing.webhooks.call_webhook import CallWebhookHandler, get_call_webhook_handler
from packages.billing.webhooks.gateway_webhook import (
    GatewayWebhookHandler,
    get_gateway_webhook_handler,
)

GATEWAY_URL = "/api/v1/webhooks/gateway"
VOICE_URL = "/api/v1/webhooks/voice"


@pytest.fixture
def gateway(client: AsyncClient, webhook_secret, sign_gateway, gateway_payloads):
    """Posts signed gateway deliveries."""
    app.dependency_overrides[get_gateway_webhook_handler] = lambda: GatewayWebhookHandler(
        webhook_secret=webhook_secret
    )

    async def post(payload: dict, signature: str = None):
        raw = gateway_payloads.encode(payload)
        return await client.post(
            GATEWAY_URL,
            content=raw,
            headers={"paddle-signature": signature or sign_gateway(raw)},
        )

    return post


class TestGatewayWebhook:
    async def test_bad_signature_rejected(self, gateway, gateway_payloads, sample_client):
        payload = gateway_payloads.transaction(
            sample_client.id, settings.gateway_price_id_growth
        )

        response = await gateway(payload, signature="ts=1;h1=deadbeef")

        assert response.status_code == 401
        assert await PaymentRepository().get_by_event_id("txn_001") is None

    async def test_replayed_delivery_rejected(
        self, gateway, gateway_payloads, sign_gateway, sample_client
    ):
        payload = gateway_payloads.transaction(
            sample_client.id, settings.gateway_price_id_growth
        )
        stale_ts = str(int(time.time()) - 3600)

        response = await gateway(
            payload, signature=sign_gateway(gateway_payloads.encode(payload), timestamp=stale_ts)
        )

        assert response.status_code == 401
        assert await PaymentRepository().get_by_event_id("txn_001") is None

    async def test_malformed_payload_acknowledged(
        self, client: AsyncClient, webhook_secret, sign_gateway
    ):
        app.dependency_overrides[get_gateway_webhook_handler] = lambda: GatewayWebhookHandler(
            webhook_secret=webhook_secret
        )
        raw = b"{not json"

        response = await client.post(
            GATEWAY_URL, content=raw, headers={"paddle-signature": sign_gateway(raw)}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}

    async def test_plan_purchase_upgrades_client(self, gateway, gateway_payloads, sample_client):
        payload = gateway_payloads.transaction(
            sample_client.id,
            settings.gateway_price_id_growth,
            transaction_id="txn_growth",
            customer_email="new-owner@dental.example",
            customer_id="ctm_999",
        )

        response = await gateway(payload)

        assert response.status_code == 200
        assert response.json() == {"received": True}
        payment = await PaymentRepository().get_by_event_id("txn_growth")
        assert payment.payment_kind == PaymentKind.UPGRADE
        assert payment.amount == Decimal("497")
        client = await ClientRepository().get(sample_client.id)
        assert client.plan_key == PlanKey.GROWTH
        assert client.minute_allowance == 2500
        assert client.email == "new-owner@dental.example"
        assert client.gateway_customer_id == "ctm_999"

    async def test_redelivery_recorded_once(self, gateway, gateway_payloads, sample_client):
        payload = gateway_payloads.transaction(
            sample_client.id, settings.gateway_price_id_starter, transaction_id="txn_renew"
        )

        first = await gateway(payload)
        second = await gateway(payload)

        assert first.status_code == second.status_code == 200
        payments = await PaymentRepository().list_for_client(sample_client.id)
        assert [p.payment_kind for p in payments] == [PaymentKind.RENEWAL]

    async def test_usage_payment_settles_and_resumes(
        self, gateway, gateway_payloads, paused_client
    ):
        now = utcnow()
        await ClientRepository().set_usage_due_at(paused_client.id, now - timedelta(days=1))
        invoices = UsageInvoiceRepository()
        invoice = await invoices.insert_if_absent(
            UsageInvoiceCreate(
                event_id="usage:paused",
                client_id=paused_client.id,
                window_start=now - timedelta(days=40),
                window_end=now - timedelta(days=8),
                minutes_exact=100.0,
                price_per_minute=Decimal("0.26"),
                amount=Decimal("26.00"),
                due_at=now - timedelta(days=1),
            )
        )
        await invoices.mark_charging([invoice.id], "uc_paused", now - timedelta(days=7))
        await invoices.mark_sent("uc_paused", now - timedelta(days=7), "req_sub_paused")
        payload = gateway_payloads.transaction(
            paused_client.id,
            settings.gateway_price_id_usage,
            transaction_id="txn_usage",
            grand_total="2600",
            subscription_id="sub_paused",
        )

        response = await gateway(payload)

        assert response.status_code == 200
        payment = await PaymentRepository().get_by_event_id("txn_usage")
        assert payment.payment_kind == PaymentKind.USAGE
        assert payment.amount == Decimal("26.00")
        client = await ClientRepository().get(paused_client.id)
        assert client.agent_status == AgentStatus.ACTIVE
        assert client.usage_invoice_due_at is None
        invoice = await UsageInvoiceRepository().get_by_event_id("usage:paused")
        assert invoice.status == InvoiceStatus.PAID

    async def test_unknown_client_is_retryable(self, gateway, gateway_payloads):
        payload = gateway_payloads.transaction("ghost", settings.gateway_price_id_starter)

        response = await gateway(payload)

        assert response.status_code == 500

    async def test_unknown_price_and_missing_client_acknowledged(
        self, gateway, gateway_payloads, sample_client
    ):
        unknown_price = gateway_payloads.transaction(sample_client.id, "pri_unknown")
        no_client = gateway_payloads.transaction("", settings.gateway_price_id_starter)

        assert (await gateway(unknown_price)).status_code == 200
        assert (await gateway(no_client)).status_code == 200
        assert await PaymentRepository().list_for_client(sample_client.id) == []

    async def test_subscription_sync_ignores_stale(self, gateway, gateway_payloads, sample_client):
        newer = gateway_payloads.subscription(
            sample_client.id, status="past_due", occurred_at="2026-10-05T00:00:00Z"
        )
        older = gateway_payloads.subscription(
            sample_client.id, status="active", occurred_at="2026-10-01T00:00:00Z"
        )

        assert (await gateway(newer)).status_code == 200
        assert (await gateway(older)).status_code == 200

        client = await ClientRepository().get(sample_client.id)
        assert client.renewal_status == RenewalStatus.PAST_DUE
        assert client.next_billing_date is not None


def end_of_call(assistant_id: str, call_id: str = "call-1", seconds: int = 95, booked=False):
    message = {
        "type": "end-of-call-report",
        "assistant": {"id": assistant_id},
        "call": {"id": call_id, "durationSeconds": seconds},
    }
    if booked:
        message["artifact"] = {
            "structuredOutputs": {"so": {"name": "Appointment Booked", "result": True}}
        }
    return {"message": message}


class TestVoiceWebhook:
    @pytest.fixture(autouse=True)
    def open_handler(self):
        app.dependency_overrides[get_call_webhook_handler] = lambda: CallWebhookHandler(
            webhook_secret=""
        )

    async def test_end_of_call_records_usage(self, client: AsyncClient, sample_client):
        response = await client.post(VOICE_URL, json=end_of_call("asst_123", booked=True))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        entry = await UsageEntryRepository().get_by_external_call_id("call-1")
        assert entry.client_id == sample_client.id
        assert entry.duration_minutes_exact == 1.6
        assert entry.outcome_success is True

    async def test_redelivery_keeps_one_entry(self, client: AsyncClient, sample_client):
        await client.post(VOICE_URL, json=end_of_call("asst_123", seconds=60))
        await client.post(VOICE_URL, json=end_of_call("asst_123", seconds=120))

        summary = await UsageEntryRepository().get_period_summary(
            sample_client.id, utcnow() - timedelta(days=1), utcnow()
        )
        assert summary.calls == 1
        assert summary.minutes_exact == pytest.approx(2.0)

    async def test_tool_calls_answered(self, client: AsyncClient):
        response = await client.post(
            VOICE_URL,
            json={
                "message": {
                    "type": "tool-calls",
                    "toolCallList": [{"id": "tc_1", "name": "check_availability"}],
                }
            },
        )

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[0]["toolCallId"] == "tc_1"
        assert results[0]["name"] == "check_availability"

    async def test_unknown_assistant_and_malformed_body(self, client: AsyncClient):
        unknown = await client.post(VOICE_URL, json=end_of_call("asst_nobody"))
        malformed = await client.post(VOICE_URL, content=b"<xml/>")

        assert unknown.json() == {"ok": True}
        assert malformed.json() == {"ok": True}
        assert await UsageEntryRepository().get_by_external_call_id("call-1") is None

    async def test_secret_mismatch(self, client: AsyncClient, sample_client):
        app.dependency_overrides[get_call_webhook_handler] = lambda: CallWebhookHandler(
            webhook_secret="voice-secret"
        )

        rejected = await client.post(
            VOICE_URL, json=end_of_call("asst_123"), headers={"x-vapi-secret": "wrong"}
        )
        accepted = await client.post(
            VOICE_URL,
            json=end_of_call("asst_123", call_id="call-ok"),
            headers={"x-vapi-secret": "voice-secret"},
        )

        assert rejected.status_code == 401
        assert accepted.status_code == 200
        assert await UsageEntryRepository().get_by_external_call_id("call-ok") is not None
