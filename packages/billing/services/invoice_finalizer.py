"""
Invoice finalizer - turns a window of usage into a usage invoice with a grace period.
"""

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from common.core.clock import ensure_utc, utcnow
from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import ClientNotFoundError
from packages.billing.models.domain.client import Client
from packages.billing.models.domain.invoice import (
    FinalizationStatus,
    InvoiceFinalization,
    UsageInvoice,
    UsageInvoiceCreate,
)
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository

logger = get_logger(__name__)

CENT = Decimal("0.01")


def usage_amount(minutes: float, price_per_minute: Decimal) -> Decimal:
    """Minutes times price, rounded half-up to cents."""
    exact = Decimal(str(round(minutes, 4))) * Decimal(str(price_per_minute))
    return exact.quantize(CENT, rounding=ROUND_HALF_UP)


def usage_event_id(client_id: str, window_start: datetime, window_end: datetime) -> str:
    """Deterministic finalization key for one client window."""
    return f"usage:{client_id}:{window_start.isoformat()}:{window_end.isoformat()}"


class InvoiceFinalizer:
    """
    Finalizes usage windows into invoices.

    Finalization never pauses an agent; it only starts the grace clock by
    setting the client's usage due date when none is outstanding.
    """

    def __init__(
        self,
        client_repo: Optional[ClientRepository] = None,
        usage_repo: Optional[UsageEntryRepository] = None,
        invoice_repo: Optional[UsageInvoiceRepository] = None,
    ):
        self.client_repo = client_repo or ClientRepository()
        self.usage_repo = usage_repo or UsageEntryRepository()
        self.invoice_repo = invoice_repo or UsageInvoiceRepository()

    @trace_span
    async def finalize_usage_invoice(
        self,
        client_id: str,
        from_at: datetime,
        to_at: datetime,
        price_per_minute: Decimal,
        event_id: str,
        grace_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> InvoiceFinalization:
        """
        Finalize usage in ``[from_at, to_at)`` under ``event_id``.

        ``to_at`` is clamped to now so only past usage is billed. Zero usage
        and an already finalized ``event_id`` are successful no-ops. While an
        earlier invoice is unpaid no new invoice is written and the result is
        ``debt_outstanding``; the window is finalized after that debt settles.
        """
        now = ensure_utc(now) or utcnow()
        grace_days = settings.usage_grace_days if grace_days is None else grace_days
        window_start = ensure_utc(from_at)
        window_end = min(ensure_utc(to_at), now)

        async with transaction():
            client = await self.client_repo.get_for_update(client_id)
            if client is None:
                raise ClientNotFoundError(client_id)

            if client.has_usage_debt():
                existing = await self.invoice_repo.get_by_event_id(event_id)
                if existing is not None:
                    return self._duplicate(client, existing)
                logger.info(
                    f"Usage window {event_id} not finalized: client {client_id} has an unpaid invoice",
                    extra={"client_id": client_id, "event_id": event_id},
                )
                return InvoiceFinalization(
                    status=FinalizationStatus.DEBT_OUTSTANDING,
                    client_id=client_id,
                    event_id=event_id,
                    due_at=client.usage_invoice_due_at,
                )

            minutes = 0.0
            if window_end > window_start:
                minutes = await self.usage_repo.get_window_minutes(
                    client_id, window_start, window_end
                )
            amount = usage_amount(minutes, price_per_minute)

            if minutes <= 0 or amount <= 0:
                logger.info(
                    f"No billable usage for client {client_id} in window {event_id}",
                    extra={"client_id": client_id, "event_id": event_id},
                )
                return InvoiceFinalization(
                    status=FinalizationStatus.ZERO_USAGE,
                    client_id=client_id,
                    event_id=event_id,
                    minutes=minutes,
                )

            due_at = now + timedelta(days=grace_days)
            invoice = await self.invoice_repo.insert_if_absent(
                UsageInvoiceCreate(
                    event_id=event_id,
                    client_id=client_id,
                    window_start=window_start,
                    window_end=window_end,
                    minutes_exact=minutes,
                    price_per_minute=price_per_minute,
                    amount=amount,
                    due_at=due_at,
                    created_at=now,
                )
            )

            if invoice is None:
                existing = await self.invoice_repo.get_by_event_id(event_id)
                return self._duplicate(client, existing)

            await self.client_repo.set_usage_due_at(client_id, due_at)

        logger.info(
            f"Finalized usage invoice for client {client_id}: {minutes} min, {amount}",
            extra={
                "client_id": client_id,
                "event_id": event_id,
                "minutes": minutes,
                "amount": str(amount),
                "due_at": due_at.isoformat(),
            },
        )
        return InvoiceFinalization(
            status=FinalizationStatus.CREATED,
            client_id=client_id,
            event_id=event_id,
            minutes=minutes,
            amount=amount,
            due_at=due_at,
            invoice=invoice,
        )

    def _duplicate(self, client: Client, existing: UsageInvoice) -> InvoiceFinalization:
        logger.info(
            f"Usage window {existing.event_id} already finalized",
            extra={"client_id": client.id, "event_id": existing.event_id},
        )
        return InvoiceFinalization(
            status=FinalizationStatus.DUPLICATE,
            client_id=client.id,
            event_id=existing.event_id,
            minutes=existing.minutes_exact,
            amount=existing.amount,
            due_at=client.usage_invoice_due_at,
            invoice=existing,
        )
