"""
Domain models for the client billing record.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from common.core.clock import utcnow
from packages.billing.models.domain.base import BillingModel
from packages.billing.models.domain.enums import (
    AgentStatus,
    PausedReason,
    PlanKey,
    RenewalStatus,
)


class Client(BillingModel):
    """
    Billing record of one client of the voice-agent service.

    Holds:
    - Identity (email, voice agent id, gateway customer/subscription ids)
    - Plan entitlement (plan, rank, minute allowance, overage price)
    - Agent status and pause reason
    - Usage billing clock (due date of the outstanding usage invoice,
      last charge emission, last billed instant)
    - Subscription renewal state as reported by the gateway
    """

    id: str
    email: Optional[str] = None
    voice_agent_id: Optional[str] = None
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    # Plan entitlement
    plan_key: PlanKey = PlanKey.NONE
    plan_rank: int = 0
    minute_allowance: int = 0
    price_per_minute: Decimal = Decimal("0")

    # Agent status
    agent_status: AgentStatus = AgentStatus.ACTIVE
    paused_reason: Optional[PausedReason] = None

    # Usage billing clock
    usage_invoice_due_at: Optional[datetime] = None
    usage_invoice_sent_at: Optional[datetime] = None
    last_usage_billed_at: Optional[datetime] = None

    # Renewal
    renewal_status: Optional[RenewalStatus] = None
    next_billing_date: Optional[datetime] = None
    subscription_synced_at: Optional[datetime] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("plan_key", mode="before")
    @classmethod
    def parse_plan_key(cls, v):
        return PlanKey.from_plan_type(v)

    def is_paused(self) -> bool:
        return self.agent_status == AgentStatus.PAUSED

    def has_usage_debt(self) -> bool:
        """An outstanding usage invoice exists while the due date is set."""
        return self.usage_invoice_due_at is not None

    def is_usage_overdue(self, now: datetime) -> bool:
        return self.usage_invoice_due_at is not None and self.usage_invoice_due_at <= now


class ClientCreateModel(BillingModel):
    """Model for registering a client with the billing core."""

    id: str
    email: Optional[str] = None
    voice_agent_id: Optional[str] = None
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None
    plan_key: PlanKey = PlanKey.NONE
    minute_allowance: int = 0
    price_per_minute: Decimal = Decimal("0")
    agent_status: AgentStatus = AgentStatus.ACTIVE
    paused_reason: Optional[PausedReason] = None
    last_usage_billed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_paused_has_reason(self):
        if self.agent_status == AgentStatus.PAUSED and self.paused_reason is None:
            raise ValueError("a paused client requires a paused_reason")
        return self


class ClientIdentityUpdate(BillingModel):
    """Identity fields reported by a gateway event. None means not reported."""

    email: Optional[str] = None
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None


class SubscriptionSync(BillingModel):
    """Renewal state carried by a gateway subscription event."""

    occurred_at: datetime
    renewal_status: RenewalStatus = RenewalStatus.ACTIVE
    next_billing_date: Optional[datetime] = None
    gateway_subscription_id: Optional[str] = None
    gateway_customer_id: Optional[str] = None
