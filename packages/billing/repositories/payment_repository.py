"""
Repository for payment records.
"""

from typing import List, Optional

from sqlalchemy import select

from common.core.clock import utcnow
from common.core.otel_axiom_exporter import trace_span
from common.db.upsert import insert_if_absent
from common.repositories.base import BaseRepository
from packages.billing.models.database.payment import PaymentEntity
from packages.billing.models.domain.payment import Payment, PaymentCommand


class PaymentRepository(BaseRepository[PaymentEntity, Payment]):
    """Repository for payments, unique per gateway event id."""

    def __init__(self):
        super().__init__(PaymentEntity, Payment)

    @trace_span
    async def insert_if_absent(self, command: PaymentCommand) -> Optional[Payment]:
        """
        Record the payment unless its event id was already recorded.

        Returns the new payment, or None for a duplicate event.
        """
        values = {
            "external_event_id": command.external_event_id,
            "client_id": command.client_id,
            "amount": command.amount,
            "plan_key": command.plan.value,
            "payment_kind": command.payment_kind.value,
            "paid_at": command.paid_at,
            "gateway_invoice_id": command.gateway_invoice_id,
            "gateway_order_id": command.gateway_order_id,
            "created_at": utcnow(),
        }
        async with self._get_session() as session:
            payment_id = await insert_if_absent(
                session,
                PaymentEntity.__table__,
                values,
                conflict_columns=["external_event_id"],
                returning=PaymentEntity.__table__.c.id,
            )
            if payment_id is None:
                return None
            result = await session.execute(
                select(PaymentEntity).where(PaymentEntity.id == payment_id)
            )
            return self._entity_to_domain(result.scalar_one())

    @trace_span
    async def get_by_event_id(self, external_event_id: str) -> Optional[Payment]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentEntity).where(
                    PaymentEntity.external_event_id == external_event_id
                )
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_for_client(self, client_id: str, limit: int = 100) -> List[Payment]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentEntity)
                .where(PaymentEntity.client_id == client_id)
                .order_by(PaymentEntity.paid_at.desc(), PaymentEntity.id.desc())
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())
