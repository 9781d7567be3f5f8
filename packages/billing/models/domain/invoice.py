"""
Domain models for usage invoices.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from common.core.clock import utcnow
from packages.billing.models.domain.base import BillingModel
from packages.billing.models.domain.enums import InvoiceStatus


class UsageInvoice(BillingModel):
    """
    Finalized usage invoice for one billing window.

    ``event_id`` is the finalization idempotency key; a window can be
    finalized at most once.
    """

    id: int
    event_id: str
    client_id: str
    window_start: datetime
    window_end: datetime
    minutes_exact: float
    price_per_minute: Decimal
    amount: Decimal
    status: InvoiceStatus
    due_at: datetime
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    gateway_transaction_id: Optional[str] = None
    charge_reference: Optional[str] = None
    charge_started_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @property
    def amount_cents(self) -> int:
        return int(self.amount * 100)


class UsageInvoiceCreate(BillingModel):
    event_id: str
    client_id: str
    window_start: datetime
    window_end: datetime
    minutes_exact: float
    price_per_minute: Decimal
    amount: Decimal
    status: InvoiceStatus = InvoiceStatus.OPEN
    due_at: datetime
    created_at: datetime = Field(default_factory=utcnow)


class FinalizationStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    ZERO_USAGE = "zero_usage"
    DEBT_OUTSTANDING = "debt_outstanding"  # An earlier invoice is still unpaid


class InvoiceFinalization(BillingModel):
    """Result of finalizing a usage window."""

    status: FinalizationStatus
    client_id: str
    event_id: str
    minutes: float = 0.0
    amount: Decimal = Decimal("0.00")
    due_at: Optional[datetime] = None
    invoice: Optional[UsageInvoice] = None
