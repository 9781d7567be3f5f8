"""
Scheduler endpoints for the billing sweep.

Each stage can be triggered alone; ``/sweep`` runs finalize, charge and
enforce in order. All endpoints require the cron bearer secret.
"""

from fastapi import APIRouter, Depends

from common.core.otel_axiom_exporter import get_logger
from packages.billing.dependencies import require_cron_secret
from packages.billing.models.domain.enforcement import (
    BillingSweepReport,
    ChargeSummary,
    FinalizeSummary,
    SweepSummary,
)
from packages.billing.services.billing_sweep import BillingSweepService

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


def get_billing_sweep_service() -> BillingSweepService:
    return BillingSweepService()


@router.post("/finalize", response_model=FinalizeSummary)
async def finalize_usage(
    sweep: BillingSweepService = Depends(get_billing_sweep_service),
):
    """Finalize outstanding usage windows into invoices."""
    return await sweep.finalize_all()


@router.post("/charge", response_model=ChargeSummary)
async def charge_usage(
    sweep: BillingSweepService = Depends(get_billing_sweep_service),
):
    """Emit gateway charges for finalized, not yet charged invoices."""
    return await sweep.charge_all()


@router.post("/enforce", response_model=SweepSummary)
async def enforce_usage(
    sweep: BillingSweepService = Depends(get_billing_sweep_service),
):
    """Pause agents whose usage invoice is overdue."""
    return await sweep.enforce_all()


@router.post("/sweep", response_model=BillingSweepReport)
async def run_sweep(
    sweep: BillingSweepService = Depends(get_billing_sweep_service),
):
    report = await sweep.run()
    logger.info(
        "Billing sweep completed",
        extra={
            "created": report.finalize.created,
            "charged": report.charge.charged,
            "charge_pending": report.charge.pending,
            "paused": report.enforce.paused,
        },
    )
    return report
