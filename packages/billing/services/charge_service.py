"""
Charge service - emits usage charges against the payment gateway.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import List, Optional

from common.core.clock import ensure_utc, utcnow
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import GatewayError
from packages.billing.models.domain.client import Client
from packages.billing.models.domain.enforcement import ChargeSummary
from packages.billing.models.domain.invoice import UsageInvoice
from packages.billing.models.domain.plans import PlanCatalog
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.services.plan_catalog import get_plan_catalog

logger = get_logger(__name__)


def charge_reference(invoices: List[UsageInvoice]) -> str:
    """Stable reference of one charge attempt over a set of invoices."""
    joined = "|".join(sorted(invoice.event_id for invoice in invoices))
    return "uc_" + hashlib.sha256(joined.encode("utf-8")).hexdigest()[:32]


class ChargeAction(str, Enum):
    CHARGED = "charged"
    SKIPPED = "skipped"
    PENDING = "pending"  # An earlier attempt has no recorded gateway outcome


class ChargeService:
    """
    Charges outstanding usage invoices once.

    Every open invoice of a client is claimed (``open -> charging``) in its own
    committed transaction before the gateway is called, and the claimed
    amounts are charged together. ``usage_invoice_sent_at`` is only set after
    the gateway accepted the charge. A refused charge releases the claim so
    the next sweep retries it. A charge whose outcome was never recorded stays
    claimed and is not charged again; the gateway's usage payment event
    settles it.
    """

    def __init__(
        self,
        client_repo: Optional[ClientRepository] = None,
        invoice_repo: Optional[UsageInvoiceRepository] = None,
        payment_provider: Optional[PaymentProviderInterface] = None,
        catalog: Optional[PlanCatalog] = None,
    ):
        self.client_repo = client_repo or ClientRepository()
        self.invoice_repo = invoice_repo or UsageInvoiceRepository()
        self.payment_provider = payment_provider or get_payment_provider()
        self.catalog = catalog if catalog is not None else get_plan_catalog()

    @trace_span
    async def attempt_usage_charges(self, now: Optional[datetime] = None) -> ChargeSummary:
        now = ensure_utc(now) or utcnow()
        summary = ChargeSummary()

        usage_price = self.catalog.usage_price
        if usage_price is None:
            logger.error("No usage price configured; skipping usage charges")
            return summary

        for client in await self.client_repo.list_awaiting_charge():
            summary.checked += 1
            try:
                action = await self._charge_client(client, usage_price.price_id, now)
            except Exception as e:
                summary.failed += 1
                summary.failed_client_ids.append(client.id)
                logger.error(
                    f"Usage charge failed for client {client.id}: {e}",
                    extra={"client_id": client.id},
                )
                continue
            if action == ChargeAction.CHARGED:
                summary.charged += 1
            elif action == ChargeAction.PENDING:
                summary.pending += 1
            else:
                summary.skipped += 1

        logger.info(
            f"Usage charges: checked={summary.checked} charged={summary.charged} "
            f"pending={summary.pending} skipped={summary.skipped} failed={summary.failed}"
        )
        return summary

    async def _charge_client(self, client: Client, price_id: str, now: datetime) -> ChargeAction:
        if not client.gateway_subscription_id:
            logger.warning(
                f"Client {client.id} has usage debt but no gateway subscription; not charging",
                extra={"client_id": client.id},
            )
            return ChargeAction.SKIPPED

        in_flight = await self.invoice_repo.list_charging(client.id)
        if in_flight:
            logger.warning(
                f"Usage charge {in_flight[0].charge_reference} for client {client.id} "
                f"has no recorded gateway outcome; not charging again",
                extra={
                    "client_id": client.id,
                    "charge_reference": in_flight[0].charge_reference,
                    "charge_started_at": in_flight[0].charge_started_at.isoformat(),
                },
            )
            return ChargeAction.PENDING

        async with transaction():
            await self.client_repo.get_for_update(client.id)
            invoices = await self.invoice_repo.list_open(client.id)
            if invoices:
                reference = charge_reference(invoices)
                await self.invoice_repo.mark_charging(
                    [invoice.id for invoice in invoices], reference, now
                )

        if not invoices:
            logger.warning(
                f"Client {client.id} has a usage due date but no open invoice",
                extra={"client_id": client.id},
            )
            return ChargeAction.SKIPPED

        quantity = sum(invoice.amount_cents for invoice in invoices)
        try:
            result = await self.payment_provider.charge_usage(
                subscription_id=client.gateway_subscription_id,
                price_id=price_id,
                quantity=quantity,
            )
        except GatewayError as e:
            if e.outcome_unknown:
                logger.error(
                    f"Usage charge {reference} for client {client.id} has an unknown outcome; "
                    f"left claimed until the gateway reports it",
                    extra={"client_id": client.id, "charge_reference": reference},
                )
            else:
                await self.invoice_repo.release_charge(reference)
            raise

        async with transaction():
            marked = await self.client_repo.mark_usage_invoice_sent(client.id, now)
            sent = await self.invoice_repo.mark_sent(reference, now, result.reference)

        logger.info(
            f"Charged {sent} usage invoice(s) for client {client.id}: {quantity} cents",
            extra={
                "client_id": client.id,
                "charge_reference": reference,
                "quantity": quantity,
                "sent_marked": marked,
            },
        )
        return ChargeAction.CHARGED
