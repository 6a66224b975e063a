"""
Channel Log: Append-Only Message Sequences

Channels live in a PersistentMap keyed by H(channel_id); each channel's
messages live in a PersistentVector under b"m" ++ H(channel_id).

Operations:
- get_channel:    validate id, load or return a virtual empty channel
- append_message: push a message stamped with the invocation time
- save_channel:   write the channel record (new channels bump num_channels)
- messages_slice: offset/limit pagination, permissive on out-of-range

Nothing here is durable on its own: all writes land in the invocation's
staging buffer and commit only if the whole invocation succeeds.
"""

from __future__ import annotations

import logging
from functools import partial

from tenantmesh.chat.models import Channel, ChatState, Message
from tenantmesh.core import constants as C
from tenantmesh.core.errors import StorageError, TenantMeshError
from tenantmesh.core.types import Ok, Result, Timestamp
from tenantmesh.core.validation import validate_channel_id
from tenantmesh.host.environment import HostEnvironment
from tenantmesh.namespace.hasher import NamespaceHasher
from tenantmesh.storage.codec import (
    ChannelRecord,
    MessageRecord,
    decode_channel,
    decode_message,
    encode_channel,
    encode_message,
)
from tenantmesh.storage.collections import PersistentMap, PersistentVector

logger = logging.getLogger(__name__)


class ChannelLog:
    """
    Channel operations bound to one invocation.

    Example:
        log = ChannelLog(env, state)
        channel = log.get_channel("general").unwrap()
        log.append_message(channel, "bob", "hi")
        log.save_channel(channel)
    """

    __slots__ = ("_env", "_state", "_hasher", "_channels", "_encode_message")

    def __init__(
        self,
        env: HostEnvironment,
        state: ChatState,
        compression_threshold: int = C.COMPRESSION_THRESHOLD_BYTES,
    ) -> None:
        self._env = env
        self._state = state
        self._hasher = NamespaceHasher(env.sha256)
        self._channels: PersistentMap[ChannelRecord] = PersistentMap(
            C.CHANNEL_MAP_TAG,
            env.storage,
            encode_channel,
            decode_channel,
        )
        self._encode_message = partial(
            encode_message, compression_threshold=compression_threshold,
        )

    def _vector(self, channel_hash: bytes, length: int) -> PersistentVector[MessageRecord]:
        return PersistentVector(
            self._hasher.messages_prefix(channel_hash),
            length,
            self._env.storage,
            self._encode_message,
            decode_message,
        )

    def get_channel(self, channel_id: str) -> Result[Channel, TenantMeshError]:
        """
        Load a channel by id.

        A never-written channel comes back empty and unsaved.
        """
        valid = validate_channel_id(channel_id)
        if valid.is_err():
            return valid

        channel_hash = self._hasher.channel_address(channel_id)
        found = self._channels.get(channel_hash)
        if found.is_err():
            return found

        record = found.unwrap()
        if record is None:
            return Ok(Channel(
                channel_id=channel_id,
                channel_hash=channel_hash,
                messages=self._vector(channel_hash, 0),
                persisted=False,
            ))

        return Ok(Channel(
            channel_id=record.channel_id,
            channel_hash=channel_hash,
            messages=self._vector(channel_hash, record.message_count),
            persisted=True,
        ))

    def append_message(self, channel: Channel, sender_id: str, text: str) -> Message:
        message = Message(
            time=Timestamp(self._env.current_timestamp_ns()).millis,
            sender_id=sender_id,
            text=text,
        )
        index = channel.messages.push(message.to_record())
        logger.debug(
            "Appended message",
            extra={"channel_id": channel.channel_id, "index": index},
        )
        return message

    def save_channel(self, channel: Channel) -> Result[None, StorageError]:
        record = ChannelRecord(
            channel_id=channel.channel_id,
            message_count=channel.num_messages,
        )
        inserted = self._channels.insert(channel.channel_hash, record)
        if inserted.is_err():
            return inserted
        if inserted.unwrap():
            self._state.num_channels += 1
        channel.persisted = True
        return Ok(None)

    def messages_slice(
        self,
        channel: Channel,
        from_index: int,
        limit: int,
    ) -> Result[list[Message], StorageError]:
        records = channel.messages.slice(from_index, limit)
        if records.is_err():
            return records
        return Ok([Message.from_record(r) for r in records.unwrap()])

    @property
    def state(self) -> ChatState:
        return self._state
