"""
Domain models for payment ingestion.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from common.core.clock import utcnow
from packages.billing.models.domain.base import BillingModel
from packages.billing.models.domain.enums import PaymentKind, PlanKey


class Payment(BillingModel):
    """Stored payment record. Exactly one per gateway event id."""

    id: int
    external_event_id: str
    client_id: str
    amount: Decimal
    plan_key: PlanKey
    payment_kind: PaymentKind
    paid_at: datetime
    gateway_invoice_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentCommand(BillingModel):
    """
    A confirmed payment to apply to a client.

    Combinations the billing core cannot apply are rejected at construction:
    a usage payment must carry the usage plan with no rank or allowance, and
    a subscription payment must name a paid plan.
    """

    client_id: str = Field(min_length=1)
    external_event_id: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    plan: PlanKey
    plan_amount: Decimal = Decimal("0")
    minute_allowance: int = Field(default=0, ge=0)
    price_per_minute: Decimal = Field(default=Decimal("0"), ge=0)
    payment_kind: PaymentKind
    paid_at: datetime = Field(default_factory=utcnow)
    gateway_invoice_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    @model_validator(mode="after")
    def check_kind_matches_plan(self):
        if self.payment_kind.is_usage():
            if self.plan != PlanKey.USAGE:
                raise ValueError("usage payments must use the usage plan")
            if self.plan.rank != 0 or self.minute_allowance != 0:
                raise ValueError("usage payments carry no rank or minute allowance")
        elif not self.plan.is_subscription_plan():
            raise ValueError(
                f"{self.payment_kind.value} payments require a subscription plan"
            )
        return self


class PaymentStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"


class PaymentOutcome(BillingModel):
    """Result of applying a payment command."""

    status: PaymentStatus
    payment: Optional[Payment] = None
    resumed: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.status == PaymentStatus.DUPLICATE
