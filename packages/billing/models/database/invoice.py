"""
Database entity for usage invoices.
"""

from sqlalchemy import Column, String, DateTime, Float, ForeignKey, Index, Numeric

from common.db.base import Base, BigIntegerType


class UsageInvoiceEntity(Base):
    """
    Usage invoice database entity.

    ``event_id`` is unique so each billing window is finalized at most once.
    """

    __tablename__ = "usage_invoices"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True)
    client_id = Column(
        String(64),
        ForeignKey("billing_clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    window_start = Column(DateTime(timezone=True), nullable=False)
    window_end = Column(DateTime(timezone=True), nullable=False)
    minutes_exact = Column(Float, nullable=False)
    price_per_minute = Column(Numeric(10, 4), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    status = Column(String(20), nullable=False, server_default="open")  # open, charging, sent, paid
    due_at = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    gateway_transaction_id = Column(String(255), nullable=True)
    charge_reference = Column(String(64), nullable=True, index=True)
    charge_started_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_usage_invoices_client_status", "client_id", "status"),
        Index("idx_usage_invoices_client_window_end", "client_id", "window_end"),
    )
