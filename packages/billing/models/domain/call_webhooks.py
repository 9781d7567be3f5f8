"""
Domain models for voice platform (Vapi) call webhooks and call outcome detection.

The platform posts ``{"message": {...}}`` (or the message itself) for status
updates, end-of-call reports and tool calls. Only the fields used for usage
metering are modelled.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class VoiceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AssistantRef(VoiceModel):
    id: Optional[str] = None


class ChatRef(VoiceModel):
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")


class VoiceCall(VoiceModel):
    """Call object; the platform has used several names for each timestamp."""

    id: Optional[str] = None
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")
    started_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("startedAt", "start_time", "createdAt", "created_at"),
    )
    ended_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("endedAt", "end_time", "completedAt", "completed_at"),
    )
    duration_seconds: Optional[float] = Field(default=None, alias="durationSeconds")
    duration_ms: Optional[float] = Field(default=None, alias="durationMs")

    def resolve_duration_seconds(self) -> int:
        """``durationSeconds`` when present, otherwise whole seconds of ``durationMs``."""
        if self.duration_seconds:
            return max(0, int(self.duration_seconds))
        if self.duration_ms:
            return max(0, int(self.duration_ms // 1000))
        return 0


class VoiceArtifact(VoiceModel):
    call: Optional[VoiceCall] = None
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    structured_outputs: Optional[Union[Dict[str, Any], List[Any]]] = Field(
        default=None, alias="structuredOutputs"
    )


class ToolCall(VoiceModel):
    id: Optional[str] = None
    name: Optional[str] = None


class VoiceMessage(VoiceModel):
    type: Optional[str] = None
    assistant: Optional[AssistantRef] = None
    chat: Optional[ChatRef] = None
    call: Optional[VoiceCall] = None
    call_id: Optional[str] = Field(default=None, alias="callId")
    artifact: Optional[VoiceArtifact] = None
    structured_outputs: Optional[Union[Dict[str, Any], List[Any]]] = Field(
        default=None, alias="structuredOutputs"
    )
    output: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    tool_call_list: Optional[List[ToolCall]] = Field(default=None, alias="toolCallList")

    @classmethod
    def from_body(cls, body: Any) -> "VoiceMessage":
        """Unwrap ``{"message": {...}}``; a bare message is accepted as well."""
        if isinstance(body, dict) and isinstance(body.get("message"), dict):
            body = body["message"]
        return cls.model_validate(body)

    @property
    def assistant_id(self) -> Optional[str]:
        if self.assistant and self.assistant.id:
            return self.assistant.id
        if self.chat and self.chat.assistant_id:
            return self.chat.assistant_id
        if self.call and self.call.assistant_id:
            return self.call.assistant_id
        if self.artifact and self.artifact.call and self.artifact.call.assistant_id:
            return self.artifact.call.assistant_id
        return None

    @property
    def call_object(self) -> Optional[VoiceCall]:
        if self.call is not None:
            return self.call
        if self.artifact is not None:
            return self.artifact.call
        return None

    @property
    def resolved_call_id(self) -> Optional[str]:
        call = self.call_object
        if call is not None and call.id:
            return call.id
        if self.call_id:
            return self.call_id
        if self.artifact and self.artifact.call and self.artifact.call.id:
            return self.artifact.call.id
        return None

    def is_tool_calls(self) -> bool:
        return self.type == "tool-calls" and self.tool_call_list is not None

    def transcript_items(self) -> List[Dict[str, Any]]:
        artifact_messages = self.artifact.messages if self.artifact else []
        return [*artifact_messages, *self.output, *self.messages]

    def structured_output_entries(self) -> List[Any]:
        structured = self.structured_outputs
        if structured is None and self.artifact is not None:
            structured = self.artifact.structured_outputs
        if isinstance(structured, dict):
            return list(structured.values())
        if isinstance(structured, list):
            return structured
        return []


class ToolCallResult(BaseModel):
    name: Optional[str] = None
    toolCallId: Optional[str] = None
    result: str


class ToolCallsResponse(BaseModel):
    results: List[ToolCallResult]


class CallOutcomeExtractor(ABC):
    """Detects a successful call outcome (a booked appointment) in one payload shape."""

    @abstractmethod
    def detect(self, message: VoiceMessage) -> bool:
        pass


class StructuredOutputExtractor(CallOutcomeExtractor):
    """Structured output entry named "Appointment Booked" whose result is true."""

    OUTPUT_NAME = "Appointment Booked"

    def detect(self, message: VoiceMessage) -> bool:
        for entry in message.structured_output_entries():
            if (
                isinstance(entry, dict)
                and entry.get("name") == self.OUTPUT_NAME
                and entry.get("result") is True
            ):
                return True
        return False


class CalendarToolExtractor(CallOutcomeExtractor):
    """Calendar tool result whose JSON body reports status confirmed."""

    TOOL_NAME = "google_calendar_tool"

    def detect(self, message: VoiceMessage) -> bool:
        for item in message.transcript_items():
            if item.get("role") != "tool_call_result" or item.get("name") != self.TOOL_NAME:
                continue
            result = item.get("result")
            if isinstance(result, str):
                try:
                    result = json.loads(result)
                except ValueError:
                    continue
            if isinstance(result, dict) and result.get("status") == "confirmed":
                return True
        return False


DEFAULT_OUTCOME_EXTRACTORS: Sequence[CallOutcomeExtractor] = (
    StructuredOutputExtractor(),
    CalendarToolExtractor(),
)


def detect_outcome(
    message: VoiceMessage,
    extractors: Sequence[CallOutcomeExtractor] = DEFAULT_OUTCOME_EXTRACTORS,
) -> bool:
    return any(extractor.detect(message) for extractor in extractors)
