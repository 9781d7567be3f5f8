"""
Enforcement service - the usage killswitch.
"""

from datetime import datetime
from typing import Optional

from common.core.clock import ensure_utc, utcnow
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.enforcement import (
    EnforcementAction,
    EnforcementResult,
    SweepSummary,
)
from packages.billing.repositories.client_repository import ClientRepository

logger = get_logger(__name__)


class EnforcementService:
    """
    Pauses agents whose usage invoice is past its due date.

    Never resumes; resuming belongs to payment processing. Pausing is a
    conditional update, so concurrent sweeps pause a client at most once.
    """

    def __init__(self, client_repo: Optional[ClientRepository] = None):
        self.client_repo = client_repo or ClientRepository()

    @trace_span
    async def enforce(
        self, client_id: str, now: Optional[datetime] = None
    ) -> EnforcementResult:
        now = ensure_utc(now) or utcnow()
        client = await self.client_repo.get(client_id)
        if client is None:
            return EnforcementResult(client_id=client_id, action=EnforcementAction.NOT_FOUND)
        if client.is_paused():
            return EnforcementResult(
                client_id=client_id, action=EnforcementAction.ALREADY_PAUSED
            )
        if not client.has_usage_debt():
            return EnforcementResult(client_id=client_id, action=EnforcementAction.NO_DEBT)
        if not client.is_usage_overdue(now):
            return EnforcementResult(client_id=client_id, action=EnforcementAction.NOT_DUE)

        if await self.client_repo.pause_for_unpaid_usage(client_id, now):
            logger.warning(
                f"Paused agent for client {client_id}: usage invoice overdue since {client.usage_invoice_due_at.isoformat()}",
                extra={"client_id": client_id, "reason": "usage_unpaid"},
            )
            return EnforcementResult(client_id=client_id, action=EnforcementAction.PAUSED)

        # Lost a race: paid or paused by someone else in between
        current = await self.client_repo.get(client_id)
        if current is not None and current.is_paused():
            return EnforcementResult(
                client_id=client_id, action=EnforcementAction.ALREADY_PAUSED
            )
        return EnforcementResult(client_id=client_id, action=EnforcementAction.NO_DEBT)

    @trace_span
    async def run_sweep(self, now: Optional[datetime] = None) -> SweepSummary:
        """Enforce every client with a usage due date; one failure never stops the sweep."""
        now = ensure_utc(now) or utcnow()
        summary = SweepSummary()

        for client in await self.client_repo.list_with_usage_due():
            summary.checked += 1
            try:
                result = await self.enforce(client.id, now)
            except Exception as e:
                summary.failed += 1
                summary.failed_client_ids.append(client.id)
                logger.error(
                    f"Enforcement failed for client {client.id}: {e}",
                    extra={"client_id": client.id},
                    exc_info=True,
                )
                continue
            if result.paused:
                summary.paused += 1
            else:
                summary.skipped += 1

        logger.info(
            f"Enforcement sweep: checked={summary.checked} paused={summary.paused} "
            f"skipped={summary.skipped} failed={summary.failed}"
        )
        return summary
