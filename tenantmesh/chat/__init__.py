"""
Chat module: the built-in application of the reserved "chat" tenant.

- models: Message, Channel, ChatState
- channel_log: append-only channels over persistent vectors
- protocol: tagged-union JSON requests, messages and responses
"""

from tenantmesh.chat.models import Message, Channel, ChatState
from tenantmesh.chat.channel_log import ChannelLog
from tenantmesh.chat.protocol import (
    StatusRequest,
    ChannelStatusRequest,
    ChannelMessagesRequest,
    ChatMessage,
    StatusResponse,
    ChannelStatusResponse,
    ChannelMessagesResponse,
    decode_get_request,
    decode_incoming_message,
    encode_response,
)

__all__ = [
    "Message",
    "Channel",
    "ChatState",
    "ChannelLog",
    "StatusRequest",
    "ChannelStatusRequest",
    "ChannelMessagesRequest",
    "ChatMessage",
    "StatusResponse",
    "ChannelStatusResponse",
    "ChannelMessagesResponse",
    "decode_get_request",
    "decode_incoming_message",
    "encode_response",
]
