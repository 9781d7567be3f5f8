"""
Database entity for client billing records.
"""

from sqlalchemy import Column, String, DateTime, Integer, Numeric, Index
from sqlalchemy.sql import func

from common.db.base import Base


class ClientEntity(Base):
    """
    Client billing record database entity.

    One row per client of the voice-agent service. The usage billing clock
    (due/sent/billed timestamps) and agent status are only changed through
    conditional updates so concurrent writers cannot regress them.
    """

    __tablename__ = "billing_clients"

    id = Column(String(64), primary_key=True)

    # Identity
    email = Column(String(320), nullable=True)
    voice_agent_id = Column(String(255), nullable=True, unique=True, index=True)
    gateway_customer_id = Column(String(255), nullable=True, index=True)
    gateway_subscription_id = Column(String(255), nullable=True, index=True)

    # Plan entitlement
    plan_key = Column(String(50), nullable=False, server_default="none")
    plan_rank = Column(Integer, nullable=False, server_default="0")
    minute_allowance = Column(Integer, nullable=False, server_default="0")
    price_per_minute = Column(Numeric(10, 4), nullable=False, server_default="0")

    # Agent status
    agent_status = Column(
        String(20), nullable=False, server_default="active", index=True
    )  # active, paused
    paused_reason = Column(String(50), nullable=True)  # usage_unpaid, manual

    # Usage billing clock
    usage_invoice_due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    usage_invoice_sent_at = Column(DateTime(timezone=True), nullable=True)
    last_usage_billed_at = Column(DateTime(timezone=True), nullable=True)

    # Renewal
    renewal_status = Column(String(20), nullable=True)  # active, past_due, paused, canceled
    next_billing_date = Column(DateTime(timezone=True), nullable=True)
    subscription_synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_billing_clients_status_due", "agent_status", "usage_invoice_due_at"),
    )
