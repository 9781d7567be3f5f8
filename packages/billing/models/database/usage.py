"""
Database entity for usage entries.
"""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Float, Index, Integer, false

from common.db.base import Base, BigIntegerType


class UsageEntryEntity(Base):
    """
    Usage entry database entity.

    One row per voice platform call, upserted on ``external_call_id``.
    Billing sums ``duration_minutes_exact`` over ``created_at`` windows.
    """

    __tablename__ = "usage_entries"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    client_id = Column(
        String(64),
        ForeignKey("billing_clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_call_id = Column(String(255), nullable=False, unique=True)
    voice_agent_id = Column(String(255), nullable=True)

    duration_seconds = Column(Integer, nullable=False, server_default="0")
    duration_minutes_exact = Column(Float, nullable=False, server_default="0")
    minutes_rounded = Column(Integer, nullable=False, server_default="0")

    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Once true, stays true across redeliveries
    outcome_success = Column(Boolean, nullable=False, server_default=false())
    source = Column(String(20), nullable=False, server_default="calls")

    # First-seen time; redelivery never moves it
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_usage_entries_client_created", "client_id", "created_at"),)
