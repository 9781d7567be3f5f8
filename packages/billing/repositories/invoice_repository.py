"""
Repository for usage invoices.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update

from common.core.clock import ensure_utc
from common.core.otel_axiom_exporter import trace_span
from common.db.upsert import insert_if_absent
from common.repositories.base import BaseRepository
from packages.billing.models.database.invoice import UsageInvoiceEntity
from packages.billing.models.domain.enums import InvoiceStatus
from packages.billing.models.domain.invoice import UsageInvoice, UsageInvoiceCreate


class UsageInvoiceRepository(BaseRepository[UsageInvoiceEntity, UsageInvoice]):
    """Repository for usage invoices, unique per finalization event id."""

    def __init__(self):
        super().__init__(UsageInvoiceEntity, UsageInvoice)

    @trace_span
    async def insert_if_absent(self, invoice: UsageInvoiceCreate) -> Optional[UsageInvoice]:
        """Returns the new invoice, or None when the event id was already finalized."""
        values = {
            "event_id": invoice.event_id,
            "client_id": invoice.client_id,
            "window_start": invoice.window_start,
            "window_end": invoice.window_end,
            "minutes_exact": invoice.minutes_exact,
            "price_per_minute": invoice.price_per_minute,
            "amount": invoice.amount,
            "status": invoice.status.value,
            "due_at": invoice.due_at,
            "created_at": invoice.created_at,
        }
        async with self._get_session() as session:
            invoice_id = await insert_if_absent(
                session,
                UsageInvoiceEntity.__table__,
                values,
                conflict_columns=["event_id"],
                returning=UsageInvoiceEntity.__table__.c.id,
            )
            if invoice_id is None:
                return None
            result = await session.execute(
                select(UsageInvoiceEntity).where(UsageInvoiceEntity.id == invoice_id)
            )
            return self._entity_to_domain(result.scalar_one())

    @trace_span
    async def get_by_event_id(self, event_id: str) -> Optional[UsageInvoice]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageInvoiceEntity)
                .where(UsageInvoiceEntity.event_id == event_id)
                .execution_options(populate_existing=True)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_for_client(self, client_id: str) -> List[UsageInvoice]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageInvoiceEntity)
                .where(UsageInvoiceEntity.client_id == client_id)
                .order_by(UsageInvoiceEntity.window_end.desc())
                .execution_options(populate_existing=True)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_open(self, client_id: str) -> List[UsageInvoice]:
        """Invoices finalized but not yet claimed by a charge attempt, oldest first."""
        return await self._list_with_status(client_id, InvoiceStatus.OPEN)

    @trace_span
    async def list_charging(self, client_id: str) -> List[UsageInvoice]:
        return await self._list_with_status(client_id, InvoiceStatus.CHARGING)

    async def _list_with_status(
        self, client_id: str, invoice_status: InvoiceStatus
    ) -> List[UsageInvoice]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageInvoiceEntity)
                .where(
                    UsageInvoiceEntity.client_id == client_id,
                    UsageInvoiceEntity.status == invoice_status.value,
                )
                .order_by(UsageInvoiceEntity.window_end.asc())
                .execution_options(populate_existing=True)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_earliest_open_due_at(self, client_id: str) -> Optional[datetime]:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.min(UsageInvoiceEntity.due_at)).where(
                    UsageInvoiceEntity.client_id == client_id,
                    UsageInvoiceEntity.status == InvoiceStatus.OPEN.value,
                )
            )
            return ensure_utc(result.scalar_one_or_none())

    @trace_span
    async def get_latest_window_end(self, client_id: str) -> Optional[datetime]:
        """End of the most recently finalized window, used as the next window start."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageInvoiceEntity.window_end)
                .where(UsageInvoiceEntity.client_id == client_id)
                .order_by(UsageInvoiceEntity.window_end.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def _transition(self, *conditions, **values) -> int:
        async with self._get_session() as session:
            result = await session.execute(
                update(UsageInvoiceEntity)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    @trace_span
    async def mark_charging(
        self, invoice_ids: List[int], charge_reference: str, started_at: datetime
    ) -> int:
        """open -> charging for the given invoices, tagged with the attempt reference."""
        return await self._transition(
            UsageInvoiceEntity.id.in_(invoice_ids),
            UsageInvoiceEntity.status == InvoiceStatus.OPEN.value,
            status=InvoiceStatus.CHARGING.value,
            charge_reference=charge_reference,
            charge_started_at=started_at,
        )

    @trace_span
    async def release_charge(self, charge_reference: str) -> int:
        """charging -> open after the gateway refused the attempt."""
        return await self._transition(
            UsageInvoiceEntity.charge_reference == charge_reference,
            UsageInvoiceEntity.status == InvoiceStatus.CHARGING.value,
            status=InvoiceStatus.OPEN.value,
            charge_reference=None,
            charge_started_at=None,
        )

    @trace_span
    async def mark_sent(
        self,
        charge_reference: str,
        sent_at: datetime,
        gateway_transaction_id: Optional[str] = None,
    ) -> int:
        """charging -> sent once the gateway accepted the attempt."""
        return await self._transition(
            UsageInvoiceEntity.charge_reference == charge_reference,
            UsageInvoiceEntity.status == InvoiceStatus.CHARGING.value,
            status=InvoiceStatus.SENT.value,
            sent_at=sent_at,
            gateway_transaction_id=gateway_transaction_id,
        )

    @trace_span
    async def mark_paid_for_client(self, client_id: str, paid_at: datetime) -> int:
        """
        Settle the invoices of the client that were charged. Returns the number settled.

        Open invoices were never charged, so a usage payment does not settle them.
        """
        return await self._transition(
            UsageInvoiceEntity.client_id == client_id,
            UsageInvoiceEntity.status.in_(
                [InvoiceStatus.CHARGING.value, InvoiceStatus.SENT.value]
            ),
            status=InvoiceStatus.PAID.value,
            paid_at=paid_at,
        )
