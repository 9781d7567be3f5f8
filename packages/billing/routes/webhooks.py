"""
Webhook endpoints for billing events.

Public endpoints: the gateway signs its deliveries and the voice platform may
send a shared secret; both are verified by the handlers.
"""

from fastapi import APIRouter, Depends, Request

from packages.billing.webhooks.call_webhook import (
    SECRET_HEADER,
    CallWebhookHandler,
    get_call_webhook_handler,
)
from packages.billing.webhooks.gateway_webhook import (
    GatewayWebhookHandler,
    get_gateway_webhook_handler,
)
from packages.billing.webhooks.signature import SIGNATURE_HEADER

router = APIRouter()


@router.post("/webhooks/gateway")
async def gateway_webhook(
    request: Request,
    handler: GatewayWebhookHandler = Depends(get_gateway_webhook_handler),
) -> dict:
    """Receive payment and subscription events from the payment gateway."""
    raw_body = await request.body()
    return await handler.handle(raw_body, request.headers.get(SIGNATURE_HEADER))


@router.post("/webhooks/voice")
async def voice_webhook(
    request: Request,
    handler: CallWebhookHandler = Depends(get_call_webhook_handler),
) -> dict:
    """Receive call reports and tool calls from the voice platform."""
    raw_body = await request.body()
    return await handler.handle(raw_body, request.headers.get(SECRET_HEADER))
