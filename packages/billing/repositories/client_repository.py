"""
Repository for client billing records.

Every status or billing-clock change is a conditional UPDATE whose WHERE
clause encodes the transition precondition; the returned bool says whether
this call performed the transition.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select, update

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.billing.models.database.client import ClientEntity
from packages.billing.models.domain.client import (
    Client,
    ClientCreateModel,
    ClientIdentityUpdate,
    SubscriptionSync,
)
from packages.billing.models.domain.enums import AgentStatus, PausedReason, PlanKey

_NON_BILLING_PLANS = (PlanKey.NONE.value, PlanKey.USAGE.value)


class ClientRepository(BaseRepository[ClientEntity, Client]):
    """Repository for client billing records."""

    def __init__(self):
        super().__init__(ClientEntity, Client)

    async def _update_where(self, client_id: str, *conditions, **values) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                update(ClientEntity)
                .where(ClientEntity.id == client_id, *conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    @trace_span
    async def create(self, create_model: ClientCreateModel) -> Client:
        db_obj = ClientEntity(
            id=create_model.id,
            email=create_model.email,
            voice_agent_id=create_model.voice_agent_id,
            gateway_customer_id=create_model.gateway_customer_id,
            gateway_subscription_id=create_model.gateway_subscription_id,
            plan_key=create_model.plan_key.value,
            plan_rank=create_model.plan_key.rank,
            minute_allowance=create_model.minute_allowance,
            price_per_minute=create_model.price_per_minute,
            agent_status=create_model.agent_status.value,
            paused_reason=(
                create_model.paused_reason.value if create_model.paused_reason else None
            ),
            last_usage_billed_at=create_model.last_usage_billed_at,
            created_at=create_model.created_at,
        )
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def get_for_update(self, client_id: str) -> Optional[Client]:
        """Load the client row with a row lock held until the transaction ends."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ClientEntity)
                .where(ClientEntity.id == client_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_by_voice_agent_id(self, voice_agent_id: str) -> Optional[Client]:
        async with self._get_session() as session:
            result = await session.execute(
                select(ClientEntity).where(ClientEntity.voice_agent_id == voice_agent_id)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_with_usage_due(self) -> List[Client]:
        """Clients with an outstanding usage invoice."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ClientEntity)
                .where(ClientEntity.usage_invoice_due_at.is_not(None))
                .order_by(ClientEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_awaiting_charge(self) -> List[Client]:
        """Clients with an outstanding usage invoice that has not been charged yet."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ClientEntity)
                .where(
                    ClientEntity.usage_invoice_due_at.is_not(None),
                    ClientEntity.usage_invoice_sent_at.is_(None),
                )
                .order_by(ClientEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_billable_without_debt(self) -> List[Client]:
        """Clients on a paid plan with no outstanding usage invoice."""
        async with self._get_session() as session:
            result = await session.execute(
                select(ClientEntity)
                .where(
                    ClientEntity.usage_invoice_due_at.is_(None),
                    ClientEntity.plan_key.not_in(_NON_BILLING_PLANS),
                )
                .order_by(ClientEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def sync_identity(self, client_id: str, identity: ClientIdentityUpdate) -> bool:
        """Overwrite identity fields the gateway reports with a different value."""
        values = identity.model_dump(exclude_none=True)
        if not values:
            return False
        changed = [
            getattr(ClientEntity, field).is_distinct_from(value)
            for field, value in values.items()
        ]
        return await self._update_where(client_id, or_(*changed), **values)

    @trace_span
    async def apply_plan(
        self,
        client_id: str,
        plan: PlanKey,
        minute_allowance: int,
        price_per_minute: Decimal,
    ) -> bool:
        return await self._update_where(
            client_id,
            plan_key=plan.value,
            plan_rank=plan.rank,
            minute_allowance=minute_allowance,
            price_per_minute=price_per_minute,
        )

    @trace_span
    async def set_subscription_id(self, client_id: str, subscription_id: str) -> bool:
        return await self._update_where(
            client_id,
            ClientEntity.gateway_subscription_id.is_distinct_from(subscription_id),
            gateway_subscription_id=subscription_id,
        )

    @trace_span
    async def set_usage_due_at(self, client_id: str, due_at: datetime) -> bool:
        """Start the grace period unless a due date is already outstanding."""
        return await self._update_where(
            client_id,
            ClientEntity.usage_invoice_due_at.is_(None),
            usage_invoice_due_at=due_at,
        )

    @trace_span
    async def clear_usage_debt(self, client_id: str) -> bool:
        """Clear the outstanding usage invoice and its charge marker."""
        return await self._update_where(
            client_id,
            ClientEntity.usage_invoice_due_at.is_not(None),
            usage_invoice_due_at=None,
            usage_invoice_sent_at=None,
        )

    @trace_span
    async def advance_last_usage_billed_at(self, client_id: str, billed_at: datetime) -> bool:
        """Move ``last_usage_billed_at`` forward; never backwards."""
        return await self._update_where(
            client_id,
            or_(
                ClientEntity.last_usage_billed_at.is_(None),
                ClientEntity.last_usage_billed_at < billed_at,
            ),
            last_usage_billed_at=billed_at,
        )

    @trace_span
    async def mark_usage_invoice_sent(self, client_id: str, sent_at: datetime) -> bool:
        return await self._update_where(
            client_id,
            ClientEntity.usage_invoice_due_at.is_not(None),
            ClientEntity.usage_invoice_sent_at.is_(None),
            usage_invoice_sent_at=sent_at,
        )

    @trace_span
    async def pause_for_unpaid_usage(self, client_id: str, now: datetime) -> bool:
        """active -> paused(usage_unpaid) when the usage due date has passed."""
        return await self._update_where(
            client_id,
            ClientEntity.agent_status == AgentStatus.ACTIVE.value,
            ClientEntity.usage_invoice_due_at.is_not(None),
            ClientEntity.usage_invoice_due_at <= now,
            agent_status=AgentStatus.PAUSED.value,
            paused_reason=PausedReason.USAGE_UNPAID.value,
        )

    @trace_span
    async def resume(self, client_id: str) -> bool:
        """paused -> active, clearing the pause reason."""
        return await self._update_where(
            client_id,
            ClientEntity.agent_status == AgentStatus.PAUSED.value,
            agent_status=AgentStatus.ACTIVE.value,
            paused_reason=None,
        )

    @trace_span
    async def apply_subscription_sync(self, client_id: str, sync: SubscriptionSync) -> bool:
        """Apply renewal state unless a newer subscription event was already applied."""
        values = {
            "renewal_status": sync.renewal_status.value,
            "subscription_synced_at": sync.occurred_at,
        }
        if sync.next_billing_date is not None:
            values["next_billing_date"] = sync.next_billing_date
        if sync.gateway_subscription_id:
            values["gateway_subscription_id"] = sync.gateway_subscription_id
        if sync.gateway_customer_id:
            values["gateway_customer_id"] = sync.gateway_customer_id
        return await self._update_where(
            client_id,
            or_(
                ClientEntity.subscription_synced_at.is_(None),
                ClientEntity.subscription_synced_at <= sync.occurred_at,
            ),
            **values,
        )
