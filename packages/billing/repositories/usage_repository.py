"""
Repository for the usage ledger.
"""

from datetime import datetime

from sqlalchemy import Integer, case, func, or_, select

from common.core.otel_axiom_exporter import trace_span
from common.db.upsert import dialect_insert
from common.repositories.base import BaseRepository
from packages.billing.models.database.usage import UsageEntryEntity
from packages.billing.models.domain.usage import PeriodUsage, UsageEntry, UsageEntryCreate


class UsageEntryRepository(BaseRepository[UsageEntryEntity, UsageEntry]):
    """Repository for usage entries, one per voice platform call."""

    def __init__(self):
        super().__init__(UsageEntryEntity, UsageEntry)

    @trace_span
    async def upsert(self, entry: UsageEntryCreate) -> UsageEntry:
        """
        Insert or refresh a usage entry keyed by ``external_call_id``.

        Redelivery overwrites duration, timestamps and attribution. The success
        flag is OR-ed with the stored value and ``created_at`` keeps its first
        value.
        """
        values = {
            "client_id": entry.client_id,
            "external_call_id": entry.external_call_id,
            "voice_agent_id": entry.voice_agent_id,
            "duration_seconds": entry.duration_seconds,
            "duration_minutes_exact": entry.duration_minutes_exact,
            "minutes_rounded": entry.minutes_rounded,
            "started_at": entry.started_at,
            "ended_at": entry.ended_at,
            "outcome_success": entry.outcome_success,
            "source": entry.source.value,
            "created_at": entry.created_at,
        }
        table = UsageEntryEntity.__table__

        async with self._get_session() as session:
            stmt = dialect_insert(session, table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.external_call_id],
                set_={
                    "client_id": stmt.excluded.client_id,
                    "voice_agent_id": stmt.excluded.voice_agent_id,
                    "duration_seconds": stmt.excluded.duration_seconds,
                    "duration_minutes_exact": stmt.excluded.duration_minutes_exact,
                    "minutes_rounded": stmt.excluded.minutes_rounded,
                    "started_at": stmt.excluded.started_at,
                    "ended_at": stmt.excluded.ended_at,
                    "outcome_success": or_(
                        table.c.outcome_success, stmt.excluded.outcome_success
                    ),
                },
            ).returning(table.c.id)
            result = await session.execute(stmt)
            entry_id = result.scalar_one()

            loaded = await session.execute(
                select(UsageEntryEntity)
                .where(UsageEntryEntity.id == entry_id)
                .execution_options(populate_existing=True)
            )
            return self._entity_to_domain(loaded.scalar_one())

    @trace_span
    async def get_by_external_call_id(self, external_call_id: str):
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageEntryEntity)
                .where(UsageEntryEntity.external_call_id == external_call_id)
                .execution_options(populate_existing=True)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_window_minutes(
        self, client_id: str, start: datetime, end: datetime
    ) -> float:
        """Sum of exact minutes for entries created in ``[start, end)``."""
        async with self._get_session() as session:
            result = await session.execute(
                select(
                    func.coalesce(func.sum(UsageEntryEntity.duration_minutes_exact), 0)
                ).where(
                    UsageEntryEntity.client_id == client_id,
                    UsageEntryEntity.created_at >= start,
                    UsageEntryEntity.created_at < end,
                )
            )
            return float(result.scalar_one() or 0)

    @trace_span
    async def get_period_summary(
        self, client_id: str, start: datetime, end: datetime
    ) -> PeriodUsage:
        async with self._get_session() as session:
            result = await session.execute(
                select(
                    func.count(UsageEntryEntity.id),
                    func.coalesce(func.sum(UsageEntryEntity.duration_minutes_exact), 0),
                    func.coalesce(func.sum(UsageEntryEntity.minutes_rounded), 0),
                    func.coalesce(
                        func.sum(
                            case((UsageEntryEntity.outcome_success.is_(True), 1), else_=0)
                        ),
                        0,
                    ).cast(Integer),
                ).where(
                    UsageEntryEntity.client_id == client_id,
                    UsageEntryEntity.created_at >= start,
                    UsageEntryEntity.created_at < end,
                )
            )
            calls, minutes_exact, minutes_rounded, successes = result.one()
            return PeriodUsage(
                client_id=client_id,
                period_start=start,
                period_end=end,
                calls=int(calls or 0),
                minutes_exact=round(float(minutes_exact or 0), 1),
                minutes_rounded=int(minutes_rounded or 0),
                successful_outcomes=int(successes or 0),
            )
