"""
Chat Application Protocol: Tagged-Union JSON Requests and Responses

The reserved "chat" tenant turns the generic `get` / `post_message`
entry points into a structured RPC surface. Payloads are externally
tagged JSON objects: exactly one key naming the variant, whose value is
an object of fields.

Requests (get):
    {"Status": {}}
    {"ChannelStatus": {"channelId": "general"}}
    {"ChannelMessages": {"channelId": "general", "fromIndex": 0, "limit": 10}}

Incoming messages (post_message):
    {"ChatMessage": {"channelId": "general", "text": "hi"}}

Responses:
    {"numChannels": 1, "totalNumMessages": 1}
    {"numMessages": 1}
    {"messages": [{"time": 0, "senderId": "bob", "text": "hi"}]}

Field names and variant tags are the wire contract. Unknown extra fields
inside a variant body are ignored; anything else malformed is an error.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from tenantmesh.chat.models import Message
from tenantmesh.core import constants as C
from tenantmesh.core.errors import ProtocolError
from tenantmesh.core.types import Err, Ok, Result


# =============================================================================
# REQUEST VARIANTS
# =============================================================================
@dataclass(frozen=True, slots=True)
class StatusRequest:
    """Aggregate counters across all channels."""


@dataclass(frozen=True, slots=True)
class ChannelStatusRequest:
    channel_id: str


@dataclass(frozen=True, slots=True)
class ChannelMessagesRequest:
    channel_id: str
    from_index: int
    limit: int


GetRequest = Union[StatusRequest, ChannelStatusRequest, ChannelMessagesRequest]


# =============================================================================
# INCOMING MESSAGE VARIANTS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ChatMessage:
    channel_id: str
    text: str


IncomingMessage = ChatMessage


# =============================================================================
# RESPONSES
# =============================================================================
@dataclass(frozen=True, slots=True)
class StatusResponse:
    num_channels: int
    total_num_messages: int

    def to_wire(self) -> dict[str, Any]:
        return {
            "numChannels": self.num_channels,
            "totalNumMessages": self.total_num_messages,
        }


@dataclass(frozen=True, slots=True)
class ChannelStatusResponse:
    num_messages: int

    def to_wire(self) -> dict[str, Any]:
        return {"numMessages": self.num_messages}


@dataclass(frozen=True, slots=True)
class ChannelMessagesResponse:
    messages: list[Message]

    def to_wire(self) -> dict[str, Any]:
        return {"messages": [m.to_wire() for m in self.messages]}


Response = Union[StatusResponse, ChannelStatusResponse, ChannelMessagesResponse]


def encode_response(response: Response) -> str:
    """Compact JSON, no whitespace."""
    return json.dumps(response.to_wire(), separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# DECODING
# =============================================================================
class _FieldError(Exception):
    """Internal: a variant body failed field extraction."""


def _string_field(body: Mapping[str, Any], name: str) -> str:
    if name not in body:
        raise _FieldError(f"missing field `{name}`")
    value = body[name]
    if not isinstance(value, str):
        raise _FieldError(f"field `{name}` must be a string")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise _FieldError(f"field `{name}` is not valid UTF-8") from None
    return value


def _u64_field(body: Mapping[str, Any], name: str) -> int:
    if name not in body:
        raise _FieldError(f"missing field `{name}`")
    value = body[name]
    # bool is an int subclass; JSON true/false is not a number here
    if isinstance(value, bool) or not isinstance(value, int):
        raise _FieldError(f"field `{name}` must be an unsigned integer")
    if value < 0 or value > C.MAX_U64:
        raise _FieldError(f"field `{name}` out of range for u64")
    return value


_GET_VARIANTS: dict[str, Callable[[Mapping[str, Any]], GetRequest]] = {
    "Status": lambda body: StatusRequest(),
    "ChannelStatus": lambda body: ChannelStatusRequest(
        channel_id=_string_field(body, "channelId"),
    ),
    "ChannelMessages": lambda body: ChannelMessagesRequest(
        channel_id=_string_field(body, "channelId"),
        from_index=_u64_field(body, "fromIndex"),
        limit=_u64_field(body, "limit"),
    ),
}

_MESSAGE_VARIANTS: dict[str, Callable[[Mapping[str, Any]], IncomingMessage]] = {
    "ChatMessage": lambda body: ChatMessage(
        channel_id=_string_field(body, "channelId"),
        text=_string_field(body, "text"),
    ),
}


def _decode_tagged(
    payload: str,
    payload_kind: str,
    variants: Mapping[str, Callable[[Mapping[str, Any]], Any]],
) -> Result[Any, ProtocolError]:
    try:
        document = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        return Err(ProtocolError.malformed_payload(payload_kind, f"invalid JSON: {e}", cause=e))

    if not isinstance(document, dict) or len(document) != 1:
        return Err(ProtocolError.malformed_payload(
            payload_kind, "expected an object with exactly one variant tag",
        ))

    (tag, body), = document.items()
    build = variants.get(tag)
    if build is None:
        return Err(ProtocolError.unknown_variant(payload_kind, tag, sorted(variants)))

    if not isinstance(body, dict):
        return Err(ProtocolError.malformed_payload(
            payload_kind, f"variant `{tag}` body must be an object",
        ))

    try:
        return Ok(build(body))
    except _FieldError as e:
        return Err(ProtocolError.malformed_payload(payload_kind, f"{tag}: {e}"))


def decode_get_request(payload: str) -> Result[GetRequest, ProtocolError]:
    """Decode the `key` argument of get("chat", key)."""
    return _decode_tagged(payload, "key request", _GET_VARIANTS)


def decode_incoming_message(payload: str) -> Result[IncomingMessage, ProtocolError]:
    """Decode the `message` argument of post_message("chat", message)."""
    return _decode_tagged(payload, "the message", _MESSAGE_VARIANTS)
