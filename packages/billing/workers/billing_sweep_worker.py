from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.workers.base_worker import BaseWorker
from packages.billing.services.billing_sweep import BillingSweepService

logger = get_logger(__name__)


class BillingSweepWorker(BaseWorker):
    """Runs finalize -> charge -> enforce on a fixed interval."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        run_once: bool = False,
        sweep_service: Optional[BillingSweepService] = None,
    ):
        super().__init__(
            name="billing_sweep",
            interval_seconds=interval_seconds or settings.sweep_interval_seconds,
            run_once=run_once,
        )
        self.sweep_service = sweep_service
        self.last_report = None

    async def setup(self):
        if self.sweep_service is None:
            self.sweep_service = BillingSweepService()
        await super().setup()

    async def tick(self):
        report = await self.sweep_service.run()
        self.last_report = report
        logger.info(
            f"Billing sweep finished: created={report.finalize.created} "
            f"charged={report.charge.charged} paused={report.enforce.paused}",
            extra={
                "worker_id": self.worker_id,
                "finalize_failed": report.finalize.failed,
                "charge_failed": report.charge.failed,
                "charge_pending": report.charge.pending,
                "enforce_failed": report.enforce.failed,
            },
        )
