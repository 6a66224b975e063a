"""
Record Codec: Binary Layout for Persisted Records

Fixed big-endian headers via struct, variable-length UTF-8 bodies.
Message text at or above the compression threshold is stored as an
LZ4 frame and flagged in the header.

Layouts (all versions = 0x01):
    RootState:     [ver:B][num_channels:Q][total_num_messages:Q]
    ChannelRecord: [ver:B][message_count:Q][id_len:H][channel_id]
    MessageRecord: [ver:B][flags:B][time_ms:Q][sender_len:I][text_len:I]
                   [sender_id][text]
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import lz4.frame

from tenantmesh.core import constants as C
from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Err, Ok, Result

_ROOT = struct.Struct(">BQQ")
_CHANNEL = struct.Struct(">BQH")
_MESSAGE = struct.Struct(">BBQII")
_INDEX = struct.Struct(">Q")

FLAG_COMPRESSED: int = 0x01


@dataclass(frozen=True, slots=True)
class RootState:
    """Aggregate counters persisted under STATE_KEY."""
    num_channels: int = 0
    total_num_messages: int = 0


@dataclass(frozen=True, slots=True)
class ChannelRecord:
    """Channel map entry: the id and the length of its message vector."""
    channel_id: str
    message_count: int


@dataclass(frozen=True, slots=True)
class MessageRecord:
    time_ms: int
    sender_id: str
    text: str


def encode_index(index: int) -> bytes:
    """u64 big-endian, so message keys sort in append order."""
    return _INDEX.pack(index)


# =============================================================================
# ROOT STATE
# =============================================================================

def encode_root(state: RootState) -> bytes:
    return _ROOT.pack(C.RECORD_VERSION, state.num_channels, state.total_num_messages)


def decode_root(data: bytes) -> Result[RootState, StorageError]:
    if len(data) != _ROOT.size:
        return Err(StorageError.corruption(
            f"root state is {len(data)} bytes, expected {_ROOT.size}",
        ))
    version, num_channels, total = _ROOT.unpack(data)
    if version != C.RECORD_VERSION:
        return Err(StorageError.corruption(f"unknown root state version {version}"))
    return Ok(RootState(num_channels=num_channels, total_num_messages=total))


# =============================================================================
# CHANNEL RECORD
# =============================================================================

def encode_channel(record: ChannelRecord) -> bytes:
    channel_id = record.channel_id.encode("utf-8")
    return _CHANNEL.pack(C.RECORD_VERSION, record.message_count, len(channel_id)) + channel_id


def decode_channel(data: bytes) -> Result[ChannelRecord, StorageError]:
    if len(data) < _CHANNEL.size:
        return Err(StorageError.corruption("channel record truncated"))
    version, count, id_len = _CHANNEL.unpack_from(data)
    if version != C.RECORD_VERSION:
        return Err(StorageError.corruption(f"unknown channel record version {version}"))
    body = data[_CHANNEL.size:]
    if len(body) != id_len:
        return Err(StorageError.corruption("channel id length mismatch"))
    try:
        channel_id = body.decode("utf-8")
    except UnicodeDecodeError:
        return Err(StorageError.corruption("channel id is not UTF-8"))
    return Ok(ChannelRecord(channel_id=channel_id, message_count=count))


# =============================================================================
# MESSAGE RECORD
# =============================================================================

def encode_message(
    record: MessageRecord,
    compression_threshold: int = C.COMPRESSION_THRESHOLD_BYTES,
) -> bytes:
    sender = record.sender_id.encode("utf-8")
    text = record.text.encode("utf-8")
    flags = 0
    if compression_threshold and len(text) >= compression_threshold:
        text = lz4.frame.compress(text)
        flags |= FLAG_COMPRESSED
    header = _MESSAGE.pack(
        C.RECORD_VERSION,
        flags,
        record.time_ms,
        len(sender),
        len(text),
    )
    return header + sender + text


def decode_message(data: bytes) -> Result[MessageRecord, StorageError]:
    if len(data) < _MESSAGE.size:
        return Err(StorageError.corruption("message record truncated"))
    version, flags, time_ms, sender_len, text_len = _MESSAGE.unpack_from(data)
    if version != C.RECORD_VERSION:
        return Err(StorageError.corruption(f"unknown message record version {version}"))
    body = data[_MESSAGE.size:]
    if len(body) != sender_len + text_len:
        return Err(StorageError.corruption("message body length mismatch"))

    sender = body[:sender_len]
    text = body[sender_len:]
    try:
        if flags & FLAG_COMPRESSED:
            text = lz4.frame.decompress(text)
        return Ok(MessageRecord(
            time_ms=time_ms,
            sender_id=sender.decode("utf-8"),
            text=text.decode("utf-8"),
        ))
    except UnicodeDecodeError:
        return Err(StorageError.corruption("message field is not UTF-8"))
    except RuntimeError as e:
        # lz4.frame raises RuntimeError on a bad frame
        return Err(StorageError.corruption(f"message text frame invalid: {e}"))
