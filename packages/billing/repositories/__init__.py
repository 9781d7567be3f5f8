"""Billing repositories."""

from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.usage_repository import UsageEntryRepository
from packages.billing.repositories.payment_repository import PaymentRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository

__all__ = [
    "ClientRepository",
    "UsageEntryRepository",
    "PaymentRepository",
    "UsageInvoiceRepository",
]
