"""
Payment gateway webhook handler.

Handles events from the payment gateway (Paddle Billing):
- transaction.completed: subscription purchases, plan changes, renewals and
  usage payments
- subscription.activated / subscription.updated: renewal state sync

Every event carrying a client id also syncs the payer's email and customer id.
"""

from typing import Optional

from fastapi import HTTPException, status
from pydantic import ValidationError

from common.core.clock import utcnow
from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.exceptions import StorageError
from packages.billing.exceptions import ClientNotFoundError, InvalidPaymentError
from packages.billing.models.domain.client import ClientIdentityUpdate, SubscriptionSync
from packages.billing.models.domain.enums import GatewayEventType, PaymentKind, PlanKey
from packages.billing.models.domain.gateway_webhooks import GatewayWebhookEvent
from packages.billing.models.domain.payment import PaymentCommand
from packages.billing.models.domain.plans import (
    PlanCatalog,
    PlanConfig,
    classify_plan_change,
)
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.services.payment_processor import PaymentProcessor
from packages.billing.services.plan_catalog import get_plan_catalog
from packages.billing.webhooks.signature import verify_signature

logger = get_logger(__name__)

ACK = {"received": True}


class GatewayWebhookHandler:
    """Verifies, parses and dispatches gateway webhook deliveries."""

    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        processor: Optional[PaymentProcessor] = None,
        client_repo: Optional[ClientRepository] = None,
        webhook_secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ):
        self.catalog = catalog if catalog is not None else get_plan_catalog()
        self.processor = processor or PaymentProcessor()
        self.client_repo = client_repo or ClientRepository()
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.gateway_webhook_secret
        )
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else settings.gateway_webhook_tolerance_seconds
        )

    async def handle(self, raw_body: bytes, signature_header: Optional[str]) -> dict:
        """
        Process one delivery.

        Returns an acknowledgement for everything the gateway should not
        redeliver. Raises 401 for a bad signature and 500 when storage fails,
        so the gateway retries.
        """
        if not verify_signature(
            signature_header, raw_body, self.webhook_secret, self.tolerance_seconds
        ):
            logger.warning("Gateway webhook signature verification failed")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
            )

        try:
            event = GatewayWebhookEvent.model_validate_json(raw_body)
        except ValidationError as e:
            logger.error(
                "Invalid gateway webhook payload",
                extra={"validation_errors": str(e.errors()[:5])},
            )
            return ACK

        client_id = event.data.client_id
        logger.info(
            f"Received gateway webhook: {event.event_type}",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "client_id": client_id,
            },
        )
        if not client_id:
            logger.info(f"Gateway event {event.event_id} carries no client id; ignored")
            return ACK

        try:
            await self._sync_identity(client_id, event)
            await self._dispatch(client_id, event)
        except ClientNotFoundError as e:
            logger.error(f"Gateway webhook for unknown client: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unknown client",
            )
        except StorageError as e:
            logger.error(
                f"Storage failure processing gateway webhook: {str(e)}",
                extra={"event_id": event.event_id, "error": str(e)},
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            )
        except Exception as e:
            logger.error(
                f"Failed to process gateway webhook: {str(e)}",
                extra={"event_id": event.event_id, "error": str(e)},
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            )
        return ACK

    async def _dispatch(self, client_id: str, event: GatewayWebhookEvent) -> None:
        try:
            event_type = GatewayEventType(event.event_type)
        except ValueError:
            logger.info(f"Unhandled gateway webhook type: {event.event_type}")
            return

        if event_type == GatewayEventType.TRANSACTION_COMPLETED:
            await self._handle_transaction_completed(client_id, event)
        else:
            await self._handle_subscription_changed(client_id, event)

    async def _sync_identity(self, client_id: str, event: GatewayWebhookEvent) -> None:
        identity = ClientIdentityUpdate(
            email=event.data.customer_email,
            gateway_customer_id=event.data.customer_id,
        )
        if await self.client_repo.sync_identity(client_id, identity):
            logger.warning(
                f"Client {client_id} identity updated from gateway event",
                extra={"client_id": client_id, "email": identity.email},
            )

    @trace_span
    async def _handle_transaction_completed(
        self, client_id: str, event: GatewayWebhookEvent
    ) -> None:
        data = event.data
        price_id = data.price_id
        plan = self.catalog.lookup(price_id)
        if plan is None:
            logger.warning(
                "Unknown price id in transaction.completed",
                extra={"price_id": price_id, "client_id": client_id},
            )
            return

        external_event_id = data.id or event.event_id
        if not external_event_id:
            logger.error(
                "transaction.completed without transaction id",
                extra={"client_id": client_id},
            )
            return

        try:
            command = await self._build_command(client_id, external_event_id, plan, event)
        except InvalidPaymentError as e:
            logger.error(
                f"Cannot build payment command for {external_event_id}: {e}",
                extra={"client_id": client_id, "price_id": price_id},
            )
            return

        outcome = await self.processor.process_payment(command)
        logger.info(
            f"Payment {external_event_id} {outcome.status.value}: {command.payment_kind.value}",
            extra={
                "client_id": client_id,
                "event_id": external_event_id,
                "payment_kind": command.payment_kind.value,
                "resumed": outcome.resumed,
            },
        )

    async def _build_command(
        self,
        client_id: str,
        external_event_id: str,
        plan: PlanConfig,
        event: GatewayWebhookEvent,
    ) -> PaymentCommand:
        try:
            return await self._payment_command(client_id, external_event_id, plan, event)
        except ValidationError as e:
            raise InvalidPaymentError(str(e.errors()[:5])) from e

    async def _payment_command(
        self,
        client_id: str,
        external_event_id: str,
        plan: PlanConfig,
        event: GatewayWebhookEvent,
    ) -> PaymentCommand:
        data = event.data
        paid_at = data.billed_at or event.occurred_at or utcnow()
        refs = {
            "client_id": client_id,
            "external_event_id": external_event_id,
            "paid_at": paid_at,
            "gateway_invoice_id": data.invoice_id,
            "gateway_order_id": data.order_id,
            "gateway_subscription_id": data.subscription_id,
        }

        if plan.payment_kind == PaymentKind.USAGE:
            # Usage amount is whatever the gateway collected
            return PaymentCommand(
                amount=data.grand_total_amount(),
                plan=PlanKey.USAGE,
                plan_amount=plan.base_amount,
                minute_allowance=0,
                price_per_minute=plan.price_per_minute,
                payment_kind=PaymentKind.USAGE,
                **refs,
            )

        # Subscriptions are recorded at the catalog amount
        client = await self.client_repo.get(client_id)
        current_plan = client.plan_key if client else None
        return PaymentCommand(
            amount=plan.base_amount,
            plan=plan.plan,
            plan_amount=plan.base_amount,
            minute_allowance=plan.minute_allowance,
            price_per_minute=plan.price_per_minute,
            payment_kind=classify_plan_change(current_plan, plan.plan),
            **refs,
        )

    @trace_span
    async def _handle_subscription_changed(
        self, client_id: str, event: GatewayWebhookEvent
    ) -> None:
        data = event.data
        sync = SubscriptionSync(
            occurred_at=event.occurred_at or data.updated_at or utcnow(),
            renewal_status=data.renewal_status(),
            next_billing_date=data.next_billed_at,
            gateway_subscription_id=data.id,
            gateway_customer_id=data.customer_id,
        )
        applied = await self.client_repo.apply_subscription_sync(client_id, sync)
        if applied:
            logger.info(
                f"Subscription state synced for client {client_id}: {sync.renewal_status.value}",
                extra={"client_id": client_id, "event_type": event.event_type},
            )
        else:
            logger.info(
                f"Subscription event for client {client_id} not applied (stale or unknown client)",
                extra={"client_id": client_id, "event_id": event.event_id},
            )


_handler: Optional[GatewayWebhookHandler] = None


def get_gateway_webhook_handler() -> GatewayWebhookHandler:
    """Process-wide handler; FastAPI dependency."""
    global _handler
    if _handler is None:
        _handler = GatewayWebhookHandler()
    return _handler
