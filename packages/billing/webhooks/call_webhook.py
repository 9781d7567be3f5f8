"""
Voice platform webhook handler.

Meters calls into the usage ledger. Deliveries for unknown assistants, or
without a call id, are acknowledged and dropped so the platform stops retrying.
"""

import hmac
import json
from typing import Optional

from fastapi import HTTPException, status
from pydantic import ValidationError

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.call_webhooks import (
    ToolCallResult,
    ToolCallsResponse,
    VoiceMessage,
    detect_outcome,
)
from packages.billing.models.domain.usage import UsageEntryCreate
from packages.billing.repositories.client_repository import ClientRepository
from packages.billing.services.usage_service import UsageService

logger = get_logger(__name__)

SECRET_HEADER = "x-vapi-secret"

ACK = {"ok": True}


class CallWebhookHandler:
    """Turns end-of-call reports into usage entries and answers tool calls."""

    def __init__(
        self,
        usage_service: Optional[UsageService] = None,
        client_repo: Optional[ClientRepository] = None,
        webhook_secret: Optional[str] = None,
    ):
        self.usage_service = usage_service or UsageService()
        self.client_repo = client_repo or ClientRepository()
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.voice_webhook_secret
        )

    def _check_secret(self, provided: Optional[str]) -> None:
        if not self.webhook_secret:
            return
        if not provided or not hmac.compare_digest(provided, self.webhook_secret):
            logger.warning("Voice webhook secret mismatch")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret"
            )

    async def handle(self, raw_body: bytes, secret_header: Optional[str] = None) -> dict:
        self._check_secret(secret_header)

        try:
            message = VoiceMessage.from_body(json.loads(raw_body or b"null"))
        except (ValueError, ValidationError) as e:
            logger.error(f"Invalid voice webhook payload: {e}")
            return ACK

        if message.is_tool_calls():
            return self._tool_calls_response(message).model_dump()

        assistant_id = message.assistant_id
        if not assistant_id:
            logger.info(f"Voice webhook {message.type} without assistant id; ignored")
            return ACK

        try:
            await self._record_call(assistant_id, message)
        except Exception as e:
            logger.error(
                f"Failed to record voice call usage: {str(e)}",
                extra={"assistant_id": assistant_id, "error": str(e)},
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            )
        return ACK

    def _tool_calls_response(self, message: VoiceMessage) -> ToolCallsResponse:
        results = [
            ToolCallResult(
                name=tool_call.name,
                toolCallId=tool_call.id,
                result=json.dumps({"status": "received"}),
            )
            for tool_call in message.tool_call_list or []
        ]
        return ToolCallsResponse(results=results)

    @trace_span
    async def _record_call(self, assistant_id: str, message: VoiceMessage) -> None:
        client = await self.client_repo.get_by_voice_agent_id(assistant_id)
        if client is None:
            logger.info(
                f"No client for voice agent {assistant_id}; call not metered",
                extra={"assistant_id": assistant_id},
            )
            return

        call_id = message.resolved_call_id
        if not call_id:
            logger.info(
                f"Voice webhook {message.type} for client {client.id} without call id",
                extra={"client_id": client.id},
            )
            return

        call = message.call_object
        duration_seconds = call.resolve_duration_seconds() if call else 0
        await self.usage_service.record_usage(
            UsageEntryCreate(
                client_id=client.id,
                external_call_id=call_id,
                voice_agent_id=assistant_id,
                duration_seconds=duration_seconds,
                started_at=call.started_at if call else None,
                ended_at=call.ended_at if call else None,
                outcome_success=detect_outcome(message),
            )
        )


_handler: Optional[CallWebhookHandler] = None


def get_call_webhook_handler() -> CallWebhookHandler:
    global _handler
    if _handler is None:
        _handler = CallWebhookHandler()
    return _handler
