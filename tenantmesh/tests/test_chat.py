"""
Unit Tests: Chat Tenant

Tests:
    - Channel log: virtual channels, append, save, pagination
    - Protocol decoding of requests and incoming messages
    - Compact camelCase response encoding
"""

import json

import pytest

from tenantmesh.chat.channel_log import ChannelLog
from tenantmesh.chat.models import ChatState, Message
from tenantmesh.chat.protocol import (
    ChannelMessagesRequest,
    ChannelMessagesResponse,
    ChannelStatusRequest,
    ChannelStatusResponse,
    ChatMessage,
    StatusRequest,
    StatusResponse,
    decode_get_request,
    decode_incoming_message,
    encode_response,
)
from tenantmesh.core.errors import ErrorCode
from tenantmesh.host.environment import InvocationContext
from tenantmesh.namespace.hasher import NamespaceHasher
from tenantmesh.storage.backends import InMemoryBackend
from tenantmesh.storage.staging import StagedStorage

T0_NS = 1_700_000_000_123_456_789


def _context(backend, caller="bob", timestamp_ns=T0_NS):
    return InvocationContext(
        storage_view=StagedStorage(backend),
        caller_id=caller,
        self_id="tenantmesh",
        timestamp_ns=timestamp_ns,
    )


class TestChannelLog:
    """Tests for ChannelLog."""

    @pytest.fixture
    def populated(self):
        """Channel "general" with five committed messages."""
        backend = InMemoryBackend()
        ctx = _context(backend)
        state = ChatState()
        log = ChannelLog(ctx, state)
        channel = log.get_channel("general").unwrap()
        for i in range(5):
            log.append_message(channel, "bob", f"m{i}")
        assert log.save_channel(channel).is_ok()
        ctx.storage_view.commit()
        return backend, state

    def test_unknown_channel_is_virtual(self):
        backend = InMemoryBackend()
        log = ChannelLog(_context(backend), ChatState())

        channel = log.get_channel("nowhere").unwrap()

        assert channel.num_messages == 0
        assert channel.persisted is False
        assert backend.count() == 0

    def test_invalid_channel_id(self):
        log = ChannelLog(_context(InMemoryBackend()), ChatState())
        result = log.get_channel("Bad Channel")
        assert result.error.code == ErrorCode.VALIDATION_INVALID_CHARACTER

    def test_append_stamps_milliseconds(self):
        log = ChannelLog(_context(InMemoryBackend()), ChatState())
        channel = log.get_channel("general").unwrap()

        message = log.append_message(channel, "bob", "hi")

        assert message == Message(time=T0_NS // 1_000_000, sender_id="bob", text="hi")
        assert channel.num_messages == 1

    def test_save_counts_new_channels_once(self):
        state = ChatState()
        log = ChannelLog(_context(InMemoryBackend()), state)
        channel = log.get_channel("general").unwrap()

        log.append_message(channel, "bob", "a")
        log.save_channel(channel)
        log.append_message(channel, "bob", "b")
        log.save_channel(channel)

        assert state.num_channels == 1
        assert log.get_channel("general").unwrap().num_messages == 2

    def test_message_keys_live_under_channel_prefix(self, populated):
        backend, _ = populated
        prefix = NamespaceHasher().messages_prefix(NamespaceHasher().channel_address("general"))
        assert len(list(backend.scan(prefix))) == 5

    def test_reload_after_commit(self, populated):
        backend, state = populated
        log = ChannelLog(_context(backend), state)
        channel = log.get_channel("general").unwrap()

        assert channel.persisted is True
        assert channel.num_messages == 5

    def test_slice_windows(self, populated):
        backend, state = populated
        log = ChannelLog(_context(backend), state)
        channel = log.get_channel("general").unwrap()

        def texts(from_index, limit):
            return [m.text for m in log.messages_slice(channel, from_index, limit).unwrap()]

        assert texts(0, 2) == ["m0", "m1"]
        assert texts(3, 10) == ["m3", "m4"]
        assert texts(5, 10) == []
        assert texts(100, 1) == []
        assert texts(1, 0) == []
        assert texts(0, 5) == ["m0", "m1", "m2", "m3", "m4"]

    def test_indices_continue_after_reload(self, populated):
        backend, state = populated
        log = ChannelLog(_context(backend), state)
        channel = log.get_channel("general").unwrap()

        log.append_message(channel, "alice", "m5")
        log.save_channel(channel)

        assert [m.text for m in log.messages_slice(channel, 4, 5).unwrap()] == ["m4", "m5"]
        assert state.num_channels == 1


class TestDecodeGetRequest:
    """Tests for decode_get_request."""

    def test_status(self):
        assert decode_get_request('{"Status":{}}').unwrap() == StatusRequest()

    def test_channel_status(self):
        result = decode_get_request('{"ChannelStatus":{"channelId":"general"}}')
        assert result.unwrap() == ChannelStatusRequest(channel_id="general")

    def test_channel_messages(self):
        payload = '{"ChannelMessages":{"channelId":"general","fromIndex":2,"limit":10}}'
        assert decode_get_request(payload).unwrap() == ChannelMessagesRequest(
            channel_id="general", from_index=2, limit=10,
        )

    def test_extra_fields_ignored(self):
        payload = '{"ChannelStatus":{"channelId":"general","verbose":true}}'
        assert decode_get_request(payload).is_ok()

    def test_invalid_json(self):
        result = decode_get_request("{not json")
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD

    def test_unknown_variant(self):
        result = decode_get_request('{"Delete":{}}')
        assert result.error.code == ErrorCode.PROTOCOL_UNKNOWN_VARIANT
        assert result.error.context["tag"] == "Delete"

    def test_not_exactly_one_tag(self):
        assert decode_get_request("{}").is_err()
        assert decode_get_request('{"Status":{},"ChannelStatus":{"channelId":"a"}}').is_err()
        assert decode_get_request('["Status"]').is_err()
        assert decode_get_request('"Status"').is_err()

    def test_body_must_be_object(self):
        assert decode_get_request('{"Status":null}').is_err()
        assert decode_get_request('{"ChannelStatus":"general"}').is_err()

    def test_missing_field(self):
        result = decode_get_request('{"ChannelMessages":{"channelId":"general","limit":1}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD
        assert "fromIndex" in result.error.message

    def test_integer_types_enforced(self):
        base = {"channelId": "general", "fromIndex": 0, "limit": 1}
        for bad in (-1, 1.5, 1.0, True, "3", None, 2**64):
            body = dict(base, limit=bad)
            payload = json.dumps({"ChannelMessages": body})
            assert decode_get_request(payload).is_err(), bad

    def test_max_u64_accepted(self):
        payload = json.dumps({"ChannelMessages": {
            "channelId": "general", "fromIndex": 2**64 - 1, "limit": 2**64 - 1,
        }})
        assert decode_get_request(payload).is_ok()

    def test_channel_id_must_be_string(self):
        assert decode_get_request('{"ChannelStatus":{"channelId":7}}').is_err()

    def test_lone_surrogate_channel_id(self):
        result = decode_get_request('{"ChannelStatus":{"channelId":"\\ud800"}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD


class TestDecodeIncomingMessage:
    """Tests for decode_incoming_message."""

    def test_chat_message(self):
        result = decode_incoming_message('{"ChatMessage":{"channelId":"general","text":"hi"}}')
        assert result.unwrap() == ChatMessage(channel_id="general", text="hi")

    def test_empty_text_allowed(self):
        result = decode_incoming_message('{"ChatMessage":{"channelId":"general","text":""}}')
        assert result.unwrap().text == ""

    def test_missing_text(self):
        result = decode_incoming_message('{"ChatMessage":{"channelId":"general"}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD

    def test_request_variant_is_not_a_message(self):
        result = decode_incoming_message('{"Status":{}}')
        assert result.error.code == ErrorCode.PROTOCOL_UNKNOWN_VARIANT

    def test_lone_surrogate_text(self):
        result = decode_incoming_message('{"ChatMessage":{"channelId":"g","text":"\\ud800"}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD

    def test_escaped_surrogate_pair_is_valid_text(self):
        result = decode_incoming_message('{"ChatMessage":{"channelId":"g","text":"\\ud83d\\ude00"}}')
        assert result.unwrap().text == "\U0001f600"


class TestEncodeResponse:
    """Tests for encode_response."""

    def test_status(self):
        response = StatusResponse(num_channels=1, total_num_messages=3)
        assert encode_response(response) == '{"numChannels":1,"totalNumMessages":3}'

    def test_channel_status(self):
        assert encode_response(ChannelStatusResponse(num_messages=0)) == '{"numMessages":0}'

    def test_channel_messages(self):
        response = ChannelMessagesResponse(messages=[Message(time=5, sender_id="bob", text="hi")])
        assert encode_response(response) == (
            '{"messages":[{"time":5,"senderId":"bob","text":"hi"}]}'
        )

    def test_non_ascii_text_kept(self):
        response = ChannelMessagesResponse(messages=[Message(time=1, sender_id="a", text="é")])
        assert json.loads(encode_response(response))["messages"][0]["text"] == "é"
