"""Outcomes of enforcement, charge attempts and the scheduled billing sweep."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class EnforcementAction(str, Enum):
    PAUSED = "paused"
    NOT_DUE = "not_due"  # Due date in the future
    NO_DEBT = "no_debt"  # No outstanding usage invoice
    ALREADY_PAUSED = "already_paused"
    NOT_FOUND = "not_found"


class EnforcementResult(BaseModel):
    client_id: str
    action: EnforcementAction

    @property
    def paused(self) -> bool:
        return self.action == EnforcementAction.PAUSED


class SweepSummary(BaseModel):
    """Totals of one enforcement sweep."""

    checked: int = 0
    paused: int = 0
    skipped: int = 0
    failed: int = 0
    failed_client_ids: List[str] = Field(default_factory=list)


class ChargeSummary(BaseModel):
    """Totals of one charge-attempt pass."""

    checked: int = 0
    charged: int = 0
    pending: int = 0
    skipped: int = 0
    failed: int = 0
    failed_client_ids: List[str] = Field(default_factory=list)


class FinalizeSummary(BaseModel):
    """Totals of one finalization pass."""

    checked: int = 0
    created: int = 0
    duplicate: int = 0
    zero_usage: int = 0
    skipped: int = 0
    failed: int = 0
    failed_client_ids: List[str] = Field(default_factory=list)


class BillingSweepReport(BaseModel):
    """Combined result of finalize -> charge -> enforce."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    finalize: FinalizeSummary = Field(default_factory=FinalizeSummary)
    charge: ChargeSummary = Field(default_factory=ChargeSummary)
    enforce: SweepSummary = Field(default_factory=SweepSummary)
