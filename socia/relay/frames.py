"""Relay frame codec.

Inbound frames are decoded up front into typed models keyed on ``type``.
Anything that does not decode raises ``ValidationError`` and is dropped by
the engine without closing the connection.

Envelope: ``{"type": str, "data": {...}}``. Payload fields are also accepted
at the top level of the envelope; ``data`` wins when both are present.
"""

import json
import uuid
from typing import Annotated, Any, Literal, Union

import pydantic
from pydantic import AfterValidator, BaseModel, Field, StrictBool, StrictStr, TypeAdapter

from ..errors import ValidationError
from ..models import Message, MessageType


def _canonical_uuid(value: str) -> str:
    return str(uuid.UUID(value))


EntityId = Annotated[StrictStr, AfterValidator(_canonical_uuid)]


class ConnectFrame(BaseModel):
    type: Literal["connect"]


class DisconnectFrame(BaseModel):
    type: Literal["disconnect"]


class MessageFrame(BaseModel):
    type: Literal["message"]
    conversation_id: EntityId
    content: StrictStr = Field(..., min_length=1)
    message_type: MessageType = MessageType.text


class TypingFrame(BaseModel):
    type: Literal["typing"]
    conversation_id: EntityId
    is_typing: StrictBool


class ReadFrame(BaseModel):
    type: Literal["read"]
    conversation_id: EntityId
    message_ids: list[EntityId] = Field(..., min_length=1)


InboundFrame = Annotated[
    Union[ConnectFrame, DisconnectFrame, MessageFrame, TypingFrame, ReadFrame],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundFrame)


def decode_frame(raw: str | bytes | dict[str, Any] | None):
    """Decode a raw inbound frame into one of the frame models."""
    if raw is None:
        raise ValidationError("Empty frame")
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise ValidationError(f"Frame is not JSON: {type(e).__name__}") from e
    if not isinstance(raw, dict):
        raise ValidationError("Frame is not an object")

    payload = raw.get("data")
    fields = {k: v for k, v in raw.items() if k not in ("type", "data")}
    if isinstance(payload, dict):
        fields.update(payload)
    fields["type"] = raw.get("type")

    try:
        return _inbound_adapter.validate_python(fields)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {fields['type']!r} frame: {e.error_count()} error(s)") from e


# =============================================================================
# Outbound
# =============================================================================


def outbound(frame_type: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": frame_type}
    if data is not None:
        frame["data"] = data
    return frame


def connect_ack(user_id: str) -> dict[str, Any]:
    return outbound("connect", {"user_id": user_id})


def message_frame(message: Message) -> dict[str, Any]:
    return outbound("message", message.model_dump(mode="json"))


def typing_frame(conversation_id: str, is_typing: bool) -> dict[str, Any]:
    return outbound("typing", {"conversation_id": conversation_id, "is_typing": is_typing})


def read_frame(conversation_id: str, message_ids: list[str]) -> dict[str, Any]:
    return outbound("read", {"conversation_id": conversation_id, "message_ids": list(message_ids)})
