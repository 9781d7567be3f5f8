from decimal import Decimal

import pytest

from common.core.config import settings
from packages.billing.models.domain.enums import PaymentKind, PlanKey
from packages.billing.models.domain.plans import (
    PlanCatalog,
    PlanConfig,
    classify_plan_change,
)


class TestPlanKey:
    def test_ranks_are_ordered(self):
        assert PlanKey.NONE.rank == PlanKey.USAGE.rank == 0
        assert PlanKey.STARTER.rank < PlanKey.GROWTH.rank < PlanKey.SCALE.rank
        assert PlanKey.SCALE.rank < PlanKey.PRO.rank == 4

    @pytest.mark.parametrize(
        "stored,expected",
        [
            ("starter", PlanKey.STARTER),
            ("growth_monthly", PlanKey.GROWTH),
            ("  PRO ", PlanKey.PRO),
            ("enterprise", PlanKey.NONE),
            ("", PlanKey.NONE),
            (None, PlanKey.NONE),
        ],
    )
    def test_from_plan_type(self, stored, expected):
        assert PlanKey.from_plan_type(stored) == expected

    def test_subscription_plans(self):
        assert PlanKey.SCALE.is_subscription_plan()
        assert not PlanKey.USAGE.is_subscription_plan()
        assert not PlanKey.NONE.is_subscription_plan()


class TestClassifyPlanChange:
    def test_first_purchase_is_upgrade(self):
        assert classify_plan_change(PlanKey.NONE, PlanKey.STARTER) == PaymentKind.UPGRADE

    def test_higher_plan_is_upgrade(self):
        assert classify_plan_change("starter", "scale") == PaymentKind.UPGRADE

    def test_lower_plan_is_downgrade(self):
        assert classify_plan_change("pro_monthly", PlanKey.GROWTH) == PaymentKind.DOWNGRADE

    def test_same_plan_is_renewal(self):
        assert classify_plan_change(PlanKey.GROWTH, "growth") == PaymentKind.RENEWAL


class TestPlanCatalog:
    def test_configured_prices(self, plan_catalog):
        starter = plan_catalog.lookup(settings.gateway_price_id_starter)

        assert starter.plan == PlanKey.STARTER
        assert starter.base_amount == Decimal("297")
        assert starter.minute_allowance == 1000
        assert starter.price_per_minute == Decimal("0.29")
        assert plan_catalog.for_plan(PlanKey.PRO).minute_allowance == 10000
        assert len(plan_catalog) == 5

    def test_usage_price(self, plan_catalog):
        usage = plan_catalog.usage_price

        assert usage.price_id == settings.gateway_price_id_usage
        assert usage.payment_kind == PaymentKind.USAGE
        assert usage.rank == 0

    def test_unknown_price(self, plan_catalog):
        assert plan_catalog.lookup("pri_unknown") is None
        assert plan_catalog.lookup(None) is None

    def test_duplicate_price_id_rejected(self):
        entry = PlanConfig(
            price_id="pri_dup",
            plan=PlanKey.STARTER,
            base_amount=Decimal("297"),
            minute_allowance=1000,
            price_per_minute=Decimal("0.29"),
        )
        with pytest.raises(ValueError):
            PlanCatalog([entry, entry.model_copy(update={"plan": PlanKey.GROWTH})])
