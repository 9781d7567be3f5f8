"""
Domain models for the usage ledger.
"""

import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from pydantic import Field, model_validator

from common.core.clock import utcnow
from packages.billing.models.domain.base import BillingModel
from packages.billing.models.domain.enums import UsageSource


def exact_minutes(duration_seconds: int) -> float:
    """Seconds to minutes, rounded to one decimal as the voice platform reports it."""
    value = Decimal(duration_seconds) / Decimal(60)
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class UsageEntry(BillingModel):
    """One metered call, keyed by the voice platform's call id."""

    id: int
    client_id: str
    external_call_id: str
    voice_agent_id: Optional[str] = None
    duration_seconds: int
    duration_minutes_exact: float
    minutes_rounded: int
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    outcome_success: bool = False
    source: UsageSource = UsageSource.CALLS
    created_at: datetime

    class Config:
        from_attributes = True


class UsageEntryCreate(BillingModel):
    """
    Usage reported for one call.

    Exact and rounded minutes are derived from ``duration_seconds`` when not
    given explicitly.
    """

    client_id: str
    external_call_id: str
    voice_agent_id: Optional[str] = None
    duration_seconds: int = Field(ge=0)
    duration_minutes_exact: Optional[float] = None
    minutes_rounded: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    outcome_success: bool = False
    source: UsageSource = UsageSource.CALLS
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def derive_minutes(self):
        if self.duration_minutes_exact is None:
            self.duration_minutes_exact = exact_minutes(self.duration_seconds)
        if self.minutes_rounded is None:
            self.minutes_rounded = math.ceil(self.duration_minutes_exact)
        return self


class PeriodUsage(BillingModel):
    """Usage summary of one client over ``[period_start, period_end)``."""

    client_id: str
    period_start: datetime
    period_end: datetime
    calls: int
    minutes_exact: float
    minutes_rounded: int
    successful_outcomes: int
    minute_allowance: int = 0

    @property
    def minutes_remaining(self) -> int:
        return max(0, self.minute_allowance - self.minutes_rounded)

    @property
    def overage_minutes(self) -> int:
        return max(0, self.minutes_rounded - self.minute_allowance)
