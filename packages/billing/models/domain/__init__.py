"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    AgentStatus,
    GatewayEventType,
    InvoiceStatus,
    PausedReason,
    PaymentKind,
    PlanKey,
    RenewalStatus,
    UsageSource,
)
from packages.billing.models.domain.client import (
    Client,
    ClientCreateModel,
    ClientIdentityUpdate,
    SubscriptionSync,
)
from packages.billing.models.domain.plans import (
    PlanCatalog,
    PlanConfig,
    classify_plan_change,
)
from packages.billing.models.domain.usage import (
    PeriodUsage,
    UsageEntry,
    UsageEntryCreate,
)
from packages.billing.models.domain.payment import (
    Payment,
    PaymentCommand,
    PaymentOutcome,
    PaymentStatus,
)
from packages.billing.models.domain.invoice import (
    FinalizationStatus,
    InvoiceFinalization,
    UsageInvoice,
    UsageInvoiceCreate,
)

__all__ = [
    # Enums
    "AgentStatus",
    "GatewayEventType",
    "InvoiceStatus",
    "PausedReason",
    "PaymentKind",
    "PlanKey",
    "RenewalStatus",
    "UsageSource",
    # Client
    "Client",
    "ClientCreateModel",
    "ClientIdentityUpdate",
    "SubscriptionSync",
    # Plans
    "PlanCatalog",
    "PlanConfig",
    "classify_plan_change",
    # Usage
    "PeriodUsage",
    "UsageEntry",
    "UsageEntryCreate",
    # Payments
    "Payment",
    "PaymentCommand",
    "PaymentOutcome",
    "PaymentStatus",
    # Invoices
    "FinalizationStatus",
    "InvoiceFinalization",
    "UsageInvoice",
    "UsageInvoiceCreate",
]
