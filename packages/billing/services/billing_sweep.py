"""
Scheduled billing sweep: finalize -> charge -> enforce.
"""

from datetime import datetime
from typing import Optional

from common.core.clock import ensure_utc, utcnow
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.client import Client
from packages.billing.models.domain.enforcement import (
    BillingSweepReport,
    ChargeSummary,
    FinalizeSummary,
    SweepSummary,
)
from packages.billing.models.domain.invoice import FinalizationStatus
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.services.charge_service import ChargeService
from packages.billing.services.enforcement_service import EnforcementService
from packages.billing.services.invoice_finalizer import InvoiceFinalizer, usage_event_id

logger = get_logger(__name__)


class BillingSweepService:
    """
    Runs the periodic billing stages in order.

    Each stage isolates per-client failures, and a failing stage does not
    prevent the later ones from running.
    """

    def __init__(
        self,
        client_repo: Optional[ClientRepository] = None,
        invoice_repo: Optional[UsageInvoiceRepository] = None,
        finalizer: Optional[InvoiceFinalizer] = None,
        charge_service: Optional[ChargeService] = None,
        enforcement_service: Optional[EnforcementService] = None,
    ):
        self.client_repo = client_repo or ClientRepository()
        self.invoice_repo = invoice_repo or UsageInvoiceRepository()
        self.finalizer = finalizer or InvoiceFinalizer()
        self.charge_service = charge_service or ChargeService()
        self.enforcement_service = enforcement_service or EnforcementService()

    async def _window_start(self, client: Client) -> datetime:
        """Windows are contiguous: each starts where the last finalized one ended."""
        last_end = await self.invoice_repo.get_latest_window_end(client.id)
        if last_end is not None:
            return ensure_utc(last_end)
        if client.last_usage_billed_at is not None:
            return client.last_usage_billed_at
        return client.created_at

    @trace_span
    async def finalize_all(self, now: Optional[datetime] = None) -> FinalizeSummary:
        """Finalize usage for every paid-plan client without an outstanding invoice."""
        now = ensure_utc(now) or utcnow()
        summary = FinalizeSummary()

        for client in await self.client_repo.list_billable_without_debt():
            summary.checked += 1
            try:
                window_start = await self._window_start(client)
                if window_start >= now:
                    summary.skipped += 1
                    continue
                result = await self.finalizer.finalize_usage_invoice(
                    client_id=client.id,
                    from_at=window_start,
                    to_at=now,
                    price_per_minute=client.price_per_minute,
                    event_id=usage_event_id(client.id, window_start, now),
                    now=now,
                )
            except Exception as e:
                summary.failed += 1
                summary.failed_client_ids.append(client.id)
                logger.error(
                    f"Usage finalization failed for client {client.id}: {e}",
                    extra={"client_id": client.id},
                    exc_info=True,
                )
                continue

            if result.status == FinalizationStatus.CREATED:
                summary.created += 1
            elif result.status == FinalizationStatus.DUPLICATE:
                summary.duplicate += 1
            elif result.status == FinalizationStatus.DEBT_OUTSTANDING:
                summary.skipped += 1
            else:
                summary.zero_usage += 1

        logger.info(
            f"Usage finalization: checked={summary.checked} created={summary.created} "
            f"zero_usage={summary.zero_usage} failed={summary.failed}"
        )
        return summary

    @trace_span
    async def charge_all(self, now: Optional[datetime] = None) -> ChargeSummary:
        return await self.charge_service.attempt_usage_charges(now)

    @trace_span
    async def enforce_all(self, now: Optional[datetime] = None) -> SweepSummary:
        return await self.enforcement_service.run_sweep(now)

    @trace_span
    async def run(self, now: Optional[datetime] = None) -> BillingSweepReport:
        now = ensure_utc(now) or utcnow()
        report = BillingSweepReport(started_at=now)

        stages = (
            ("finalize", self.finalize_all),
            ("charge", self.charge_all),
            ("enforce", self.enforce_all),
        )
        for name, stage in stages:
            try:
                setattr(report, name, await stage(now))
            except Exception as e:
                logger.error(f"Billing sweep stage {name} failed: {e}", exc_info=True)

        report.finished_at = utcnow()
        return report
