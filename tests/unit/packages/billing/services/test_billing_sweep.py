from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from common.core.clock import utcnow
from common.core.config import settings
from packages.billing.models.domain.enforcement import EnforcementAction
from packages.billing.models.domain.enums import AgentStatus, InvoiceStatus, PaymentKind, PlanKey
from packages.billing.models.domain.payment import PaymentCommand
from packages.billing.models.domain.usage import UsageEntryCreate
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository
from packages.billing.services.billing_sweep import BillingSweepService
from packages.billing.services.charge_service import ChargeService
from packages.billing.services.enforcement_service import EnforcementService
from packages.billing.services.invoice_finalizer import InvoiceFinalizer
from packages.billing.services.payment_processor import PaymentProcessor


async def record_call(client_id: str, call_id: str, seconds: int, created_at):
    await UsageEntryRepository().upsert(
        UsageEntryCreate(
            client_id=client_id,
            external_call_id=call_id,
            duration_seconds=seconds,
            created_at=created_at,
        )
    )


class TestBillingSweep:
    @pytest.fixture
    def sweep(self, mock_payment_provider, plan_catalog):
        return BillingSweepService(
            charge_service=ChargeService(
                payment_provider=mock_payment_provider, catalog=plan_catalog
            )
        )

    async def test_usage_lifecycle(self, sweep, mock_payment_provider, sample_client):
        """Usage is invoiced, charged, enforced after grace, and paid to resume."""
        clients = ClientRepository()
        start = utcnow()
        await record_call(sample_client.id, "call-1", 450, start - timedelta(days=2))
        await record_call(sample_client.id, "call-2", 300, start - timedelta(days=1))

        report = await sweep.run(start)

        assert report.finalize.created == 1
        assert report.charge.charged == 1
        assert report.enforce.skipped == 1
        client = await clients.get(sample_client.id)
        assert client.agent_status == AgentStatus.ACTIVE
        assert client.usage_invoice_due_at == start + timedelta(days=settings.usage_grace_days)

        # Same day again: debt outstanding, nothing new finalized or charged
        again = await sweep.run(start + timedelta(hours=1))
        assert again.finalize.checked == 0
        assert again.charge.checked == 0
        mock_payment_provider.charge_usage.assert_awaited_once()

        # Grace elapsed without payment
        overdue = await sweep.run(start + timedelta(days=settings.usage_grace_days, seconds=1))
        assert overdue.enforce.paused == 1
        assert (await clients.get(sample_client.id)).agent_status == AgentStatus.PAUSED

        outcome = await PaymentProcessor().process_payment(
            PaymentCommand(
                client_id=sample_client.id,
                external_event_id="txn_usage_paid",
                amount=Decimal("3.63"),
                plan=PlanKey.USAGE,
                payment_kind=PaymentKind.USAGE,
            )
        )

        assert outcome.resumed is True
        client = await clients.get(sample_client.id)
        assert client.agent_status == AgentStatus.ACTIVE
        assert client.usage_invoice_due_at is None
        invoices = await UsageInvoiceRepository().list_for_client(sample_client.id)
        assert [i.status for i in invoices] == [InvoiceStatus.PAID]

    async def test_overdue_invoice_pauses_until_paid(
        self, sweep, mock_payment_provider, sample_client
    ):
        clients = ClientRepository()
        enforcement = EnforcementService()
        now = utcnow()
        await record_call(sample_client.id, "call-100", 6000, now - timedelta(days=1))

        finalized = await InvoiceFinalizer().finalize_usage_invoice(
            client_id=sample_client.id,
            from_at=now - timedelta(days=30),
            to_at=now,
            price_per_minute=Decimal("0.23"),
            event_id="usage:client-1:100-minutes",
            grace_days=7,
            now=now,
        )
        assert finalized.amount == Decimal("23.00")
        assert finalized.due_at == now + timedelta(days=7)
        assert (await sweep.charge_all(now)).charged == 1
        assert mock_payment_provider.charge_usage.await_args.kwargs["quantity"] == 2300

        # Grace runs out
        await clients.clear_usage_debt(sample_client.id)
        await clients.set_usage_due_at(sample_client.id, now - timedelta(minutes=1))
        paused = await enforcement.enforce(sample_client.id, now)
        assert paused.action == EnforcementAction.PAUSED
        assert (await clients.get(sample_client.id)).agent_status == AgentStatus.PAUSED

        outcome = await PaymentProcessor().process_payment(
            PaymentCommand(
                client_id=sample_client.id,
                external_event_id="txn_usage_23",
                amount=Decimal("23.00"),
                plan=PlanKey.USAGE,
                payment_kind=PaymentKind.USAGE,
            )
        )
        assert outcome.resumed is True
        client = await clients.get(sample_client.id)
        assert client.agent_status == AgentStatus.ACTIVE
        assert client.usage_invoice_due_at is None

        again = await enforcement.enforce(sample_client.id, now + timedelta(days=1))
        assert again.action == EnforcementAction.NO_DEBT
        assert (await clients.get(sample_client.id)).agent_status == AgentStatus.ACTIVE

    async def test_windows_are_contiguous(self, sweep, sample_client):
        clients = ClientRepository()
        first_run = utcnow() - timedelta(days=10)
        await record_call(sample_client.id, "early", 600, first_run - timedelta(days=1))
        await sweep.finalize_all(first_run)
        await clients.clear_usage_debt(sample_client.id)
        await record_call(sample_client.id, "late", 120, first_run + timedelta(days=1))

        second_run = utcnow()
        summary = await sweep.finalize_all(second_run)

        assert summary.created == 1
        invoices = await UsageInvoiceRepository().list_for_client(sample_client.id)
        assert invoices[0].window_start == invoices[1].window_end
        assert invoices[0].minutes_exact == pytest.approx(2.0)

    async def test_failing_stage_does_not_stop_later_stages(self, sample_client):
        charge_service = AsyncMock()
        charge_service.attempt_usage_charges.side_effect = RuntimeError("gateway down")
        sweep = BillingSweepService(charge_service=charge_service)
        await ClientRepository().set_usage_due_at(sample_client.id, utcnow() - timedelta(days=1))

        report = await sweep.run()

        assert report.charge.checked == 0
        assert report.enforce.paused == 1
