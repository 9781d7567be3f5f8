"""
Payment processor - applies confirmed payments to client billing records.
"""

from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.db.scoped import transaction
from packages.billing.exceptions import ClientNotFoundError
from packages.billing.models.domain.payment import (
    PaymentCommand,
    PaymentOutcome,
    PaymentStatus,
)
from packages.billing.providers.agent.factory import get_agent_control
from packages.billing.providers.agent.interface import AgentControlInterface
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.repositories.invoice_repository import UsageInvoiceRepository
from packages.billing.repositories.payment_repository import PaymentRepository

logger = get_logger(__name__)


class PaymentProcessor:
    """
    Applies a payment command in one transaction.

    The client row is locked first so concurrent events for the same client
    apply one after another. The payment row is then inserted with ON CONFLICT
    DO NOTHING; a conflict means the event was already applied and the call
    is a successful no-op.
    """

    def __init__(
        self,
        client_repo: Optional[ClientRepository] = None,
        payment_repo: Optional[PaymentRepository] = None,
        invoice_repo: Optional[UsageInvoiceRepository] = None,
        agent_control: Optional[AgentControlInterface] = None,
    ):
        self.client_repo = client_repo or ClientRepository()
        self.payment_repo = payment_repo or PaymentRepository()
        self.invoice_repo = invoice_repo or UsageInvoiceRepository()
        self.agent_control = agent_control or get_agent_control()

    @trace_span
    async def process_payment(self, command: PaymentCommand) -> PaymentOutcome:
        """
        Record the payment and update entitlement or usage debt.

        Raises:
            ClientNotFoundError: the client has no billing record. Nothing is
                written, so a redelivery after the client exists succeeds.
        """
        client_id = command.client_id

        async with transaction():
            client = await self.client_repo.get_for_update(client_id)
            if client is None:
                raise ClientNotFoundError(client_id)

            payment = await self.payment_repo.insert_if_absent(command)
            if payment is None:
                logger.info(
                    f"Duplicate payment event {command.external_event_id} for client {client_id}",
                    extra={"client_id": client_id, "event_id": command.external_event_id},
                )
                return PaymentOutcome(status=PaymentStatus.DUPLICATE)

            if command.payment_kind.is_usage():
                await self.client_repo.clear_usage_debt(client_id)
                await self.client_repo.advance_last_usage_billed_at(
                    client_id, command.paid_at
                )
                settled = await self.invoice_repo.mark_paid_for_client(
                    client_id, command.paid_at
                )
                uncharged_due_at = await self.invoice_repo.get_earliest_open_due_at(client_id)
                if uncharged_due_at is not None:
                    # Uncharged invoices remain owed under their original due date
                    await self.client_repo.set_usage_due_at(client_id, uncharged_due_at)
                    logger.warning(
                        f"Client {client_id} still has uncharged usage invoices due {uncharged_due_at}",
                        extra={"client_id": client_id},
                    )
                logger.info(
                    f"Usage payment applied for client {client_id}, {settled} invoice(s) settled",
                    extra={"client_id": client_id, "amount": str(command.amount)},
                )
            else:
                await self.client_repo.apply_plan(
                    client_id,
                    command.plan,
                    command.minute_allowance,
                    command.price_per_minute,
                )
                if command.gateway_subscription_id:
                    await self.client_repo.set_subscription_id(
                        client_id, command.gateway_subscription_id
                    )
                logger.info(
                    f"{command.payment_kind.value} payment applied for client {client_id}: plan {command.plan.value}",
                    extra={
                        "client_id": client_id,
                        "plan": command.plan.value,
                        "amount": str(command.amount),
                    },
                )

            resumed = False
            if client.is_paused():
                resumed = await self.agent_control.resume_agent(client_id)
                if resumed:
                    log_span_event(
                        f"Agent resumed by payment {command.external_event_id}",
                        {
                            "client_id": client_id,
                            "paused_reason": (
                                client.paused_reason.value if client.paused_reason else ""
                            ),
                        },
                    )

        return PaymentOutcome(
            status=PaymentStatus.PROCESSED, payment=payment, resumed=resumed
        )
