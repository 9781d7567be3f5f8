"""Billing services."""

from packages.billing.services.payment_processor import PaymentProcessor
from packages.billing.services.usage_service import UsageService
from packages.billing.services.invoice_finalizer import InvoiceFinalizer
from packages.billing.services.enforcement_service import EnforcementService
from packages.billing.services.charge_service import ChargeService
from packages.billing.services.billing_sweep import BillingSweepService

__all__ = [
    "PaymentProcessor",
    "UsageService",
    "InvoiceFinalizer",
    "EnforcementService",
    "ChargeService",
    "BillingSweepService",
]
