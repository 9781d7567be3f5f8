"""
Billing enums - strongly typed enumerations for plans, payments and agent state.
"""

from enum import Enum


class PlanKey(str, Enum):
    """
    Subscription plans of the voice-minutes product.

    Ranked for upgrade/downgrade classification:
    none = usage = 0 < starter = 1 < growth = 2 < scale = 3 < pro = 4.
    ``usage`` is the shared overage price and never takes part in rank
    comparisons against a subscription plan.
    """

    NONE = "none"
    USAGE = "usage"
    STARTER = "starter"
    GROWTH = "growth"
    SCALE = "scale"
    PRO = "pro"

    @property
    def rank(self) -> int:
        ranks = {
            PlanKey.NONE: 0,
            PlanKey.USAGE: 0,
            PlanKey.STARTER: 1,
            PlanKey.GROWTH: 2,
            PlanKey.SCALE: 3,
            PlanKey.PRO: 4,
        }
        return ranks[self]

    def is_subscription_plan(self) -> bool:
        """Check if this key names a paid subscription plan."""
        return self not in (PlanKey.NONE, PlanKey.USAGE)

    @classmethod
    def from_plan_type(cls, value) -> "PlanKey":
        """
        Parse a stored plan string.

        Stored values may carry a billing period suffix (``starter_monthly``);
        only the leading key counts. Unknown or empty values parse to ``none``.
        """
        if isinstance(value, PlanKey):
            return value
        if not value:
            return cls.NONE
        head = str(value).strip().lower().split("_")[0]
        try:
            return cls(head)
        except ValueError:
            return cls.NONE


class PaymentKind(str, Enum):
    """Classification of a confirmed payment."""

    SUBSCRIPTION = "subscription"
    USAGE = "usage"  # Settles outstanding usage debt
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    RENEWAL = "renewal"

    def is_usage(self) -> bool:
        return self == PaymentKind.USAGE


class AgentStatus(str, Enum):
    """Whether the client's voice agent may take calls."""

    ACTIVE = "active"
    PAUSED = "paused"


class PausedReason(str, Enum):
    """Why an agent was paused."""

    USAGE_UNPAID = "usage_unpaid"  # Killswitch: usage invoice past its due date
    MANUAL = "manual"


class RenewalStatus(str, Enum):
    """
    Subscription renewal state as last reported by the payment gateway.

    Flow: active -> past_due -> paused/canceled
    """

    ACTIVE = "active"
    PAST_DUE = "past_due"
    PAUSED = "paused"
    CANCELED = "canceled"


class InvoiceStatus(str, Enum):
    """Usage invoice lifecycle: open -> charging -> sent -> paid."""

    OPEN = "open"  # Finalized, due date running, not yet charged
    CHARGING = "charging"  # Claimed by a charge attempt, gateway outcome not yet recorded
    SENT = "sent"  # Charge emitted against the gateway
    PAID = "paid"  # Usage payment confirmed


class GatewayEventType(str, Enum):
    """Payment gateway webhook event types the billing core reacts to."""

    TRANSACTION_COMPLETED = "transaction.completed"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_UPDATED = "subscription.updated"


class UsageSource(str, Enum):
    """Where a usage entry was reported from."""

    CALLS = "calls"
