"""
Usage ledger service.
"""

from datetime import datetime
from typing import Optional

from common.core.clock import ensure_utc
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.context import readonly
from packages.billing.exceptions import ClientNotFoundError
from packages.billing.models.domain.usage import PeriodUsage, UsageEntry, UsageEntryCreate
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository

logger = get_logger(__name__)


class UsageService:
    """Records metered calls and answers usage questions over time windows."""

    def __init__(
        self,
        usage_repo: Optional[UsageEntryRepository] = None,
        client_repo: Optional[ClientRepository] = None,
    ):
        self.usage_repo = usage_repo or UsageEntryRepository()
        self.client_repo = client_repo or ClientRepository()

    @trace_span
    async def record_usage(self, entry: UsageEntryCreate) -> UsageEntry:
        """Upsert a usage entry; safe to call again for the same call id."""
        recorded = await self.usage_repo.upsert(entry)
        logger.info(
            f"Recorded usage for call {entry.external_call_id}: {recorded.duration_minutes_exact} min",
            extra={
                "client_id": entry.client_id,
                "call_id": entry.external_call_id,
                "minutes_exact": recorded.duration_minutes_exact,
                "outcome_success": recorded.outcome_success,
            },
        )
        return recorded

    @trace_span
    async def get_window_minutes(
        self, client_id: str, start: datetime, end: datetime
    ) -> float:
        return await self.usage_repo.get_window_minutes(
            client_id, ensure_utc(start), ensure_utc(end)
        )

    @readonly
    @trace_span
    async def get_period_usage(
        self, client_id: str, start: datetime, end: datetime
    ) -> PeriodUsage:
        """Usage summary over ``[start, end)`` against the client's allowance."""
        client = await self.client_repo.get(client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        summary = await self.usage_repo.get_period_summary(
            client_id, ensure_utc(start), ensure_utc(end)
        )
        summary.minute_allowance = client.minute_allowance
        return summary
