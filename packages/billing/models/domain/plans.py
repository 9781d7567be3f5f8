"""Domain models for the plan catalog."""

from decimal import Decimal
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from packages.billing.models.domain.enums import PaymentKind, PlanKey


class PlanConfig(BaseModel):
    """Immutable catalog entry for one gateway price."""

    model_config = ConfigDict(frozen=True)

    price_id: str
    plan: PlanKey
    base_amount: Decimal
    minute_allowance: int
    price_per_minute: Decimal

    @property
    def rank(self) -> int:
        return self.plan.rank

    @property
    def payment_kind(self) -> PaymentKind:
        """Default kind for a payment of this price, before rank classification."""
        if self.plan == PlanKey.USAGE:
            return PaymentKind.USAGE
        return PaymentKind.SUBSCRIPTION


class PlanCatalog:
    """
    Lookup from gateway price id to plan configuration.

    Built once at process start and never mutated afterwards.
    """

    def __init__(self, entries: Iterable[PlanConfig]):
        self._by_price_id: Dict[str, PlanConfig] = {}
        for entry in entries:
            if entry.price_id in self._by_price_id:
                raise ValueError(f"Duplicate price id in plan catalog: {entry.price_id}")
            self._by_price_id[entry.price_id] = entry

    def lookup(self, price_id: Optional[str]) -> Optional[PlanConfig]:
        if not price_id:
            return None
        return self._by_price_id.get(price_id)

    def for_plan(self, plan: PlanKey) -> Optional[PlanConfig]:
        for entry in self._by_price_id.values():
            if entry.plan == plan:
                return entry
        return None

    @property
    def usage_price(self) -> Optional[PlanConfig]:
        """The shared overage price used to charge usage invoices."""
        return self.for_plan(PlanKey.USAGE)

    def __len__(self) -> int:
        return len(self._by_price_id)


def classify_plan_change(current_plan, new_plan) -> PaymentKind:
    """
    Classify a subscription payment by plan rank.

    Higher rank is an upgrade, lower a downgrade, equal a renewal. A client
    with no prior plan has rank 0, so a first purchase is an upgrade.
    """
    old_rank = PlanKey.from_plan_type(current_plan).rank
    new_rank = PlanKey.from_plan_type(new_plan).rank
    if new_rank > old_rank:
        return PaymentKind.UPGRADE
    if new_rank < old_rank:
        return PaymentKind.DOWNGRADE
    return PaymentKind.RENEWAL
