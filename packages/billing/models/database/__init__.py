"""Database models for billing."""

from packages.billing.models.database.client import ClientEntity
from packages.billing.models.database.usage import UsageEntryEntity
from packages.billing.models.database.payment import PaymentEntity
from packages.billing.models.database.invoice import UsageInvoiceEntity

__all__ = [
    "ClientEntity",
    "UsageEntryEntity",
    "PaymentEntity",
    "UsageInvoiceEntity",
]
