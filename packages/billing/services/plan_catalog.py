"""
Plan catalog construction.

The catalog maps gateway price ids to plan configuration. It is built once per
process from settings and shared read-only by the webhook ingress and the
charge collaborator.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from common.core.config import Settings, settings
from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.enums import PlanKey
from packages.billing.models.domain.plans import PlanCatalog, PlanConfig

logger = get_logger(__name__)

# plan -> (base amount in USD, included minutes, overage price per minute)
PLAN_TERMS = {
    PlanKey.STARTER: (Decimal("297"), 1000, Decimal("0.29")),
    PlanKey.GROWTH: (Decimal("497"), 2500, Decimal("0.26")),
    PlanKey.SCALE: (Decimal("697"), 5000, Decimal("0.23")),
    PlanKey.PRO: (Decimal("997"), 10000, Decimal("0.20")),
    PlanKey.USAGE: (Decimal("0"), 0, Decimal("0")),
}


def build_plan_catalog(config: Optional[Settings] = None) -> PlanCatalog:
    config = config or settings
    price_ids = {
        PlanKey.STARTER: config.gateway_price_id_starter,
        PlanKey.GROWTH: config.gateway_price_id_growth,
        PlanKey.SCALE: config.gateway_price_id_scale,
        PlanKey.PRO: config.gateway_price_id_pro,
        PlanKey.USAGE: config.gateway_price_id_usage,
    }
    entries = []
    for plan, (base_amount, minutes, price_per_minute) in PLAN_TERMS.items():
        price_id = price_ids[plan]
        if not price_id:
            logger.warning(f"No gateway price id configured for plan {plan.value}")
            continue
        entries.append(
            PlanConfig(
                price_id=price_id,
                plan=plan,
                base_amount=base_amount,
                minute_allowance=minutes,
                price_per_minute=price_per_minute,
            )
        )
    catalog = PlanCatalog(entries)
    logger.info(f"Plan catalog built with {len(catalog)} prices")
    return catalog


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    """Process-wide catalog, built on first use."""
    return build_plan_catalog()
