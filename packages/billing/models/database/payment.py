"""
Database entity for payments.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Numeric

from common.db.base import Base, BigIntegerType


class PaymentEntity(Base):
    """
    Payment database entity.

    ``external_event_id`` is unique: the gateway event is the idempotency key,
    so a redelivered event can never produce a second payment row.
    """

    __tablename__ = "payments"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    external_event_id = Column(String(255), nullable=False, unique=True)
    client_id = Column(
        String(64),
        ForeignKey("billing_clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount = Column(Numeric(12, 2), nullable=False)
    plan_key = Column(String(50), nullable=False)
    payment_kind = Column(
        String(20), nullable=False
    )  # subscription, usage, upgrade, downgrade, renewal
    paid_at = Column(DateTime(timezone=True), nullable=False)

    gateway_invoice_id = Column(String(255), nullable=True)
    gateway_order_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_payments_client_paid", "client_id", "paid_at"),)
