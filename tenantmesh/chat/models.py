"""
Chat Data Model

- Message: immutable {time, sender_id, text}
- Channel: a channel id plus its append-only message vector
- ChatState: the aggregate counters kept in the root record
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tenantmesh.storage.codec import MessageRecord, RootState
from tenantmesh.storage.collections import PersistentVector


@dataclass(frozen=True, slots=True)
class Message:
    """
    One posted chat message.

    time is milliseconds since the Unix epoch.
    """
    time: int
    sender_id: str
    text: str

    @classmethod
    def from_record(cls, record: MessageRecord) -> Message:
        return cls(time=record.time_ms, sender_id=record.sender_id, text=record.text)

    def to_record(self) -> MessageRecord:
        return MessageRecord(time_ms=self.time, sender_id=self.sender_id, text=self.text)

    def to_wire(self) -> dict[str, Any]:
        return {"time": self.time, "senderId": self.sender_id, "text": self.text}


@dataclass(slots=True)
class Channel:
    """
    A channel as loaded for one invocation.

    A channel that was never saved is "virtual": it has the requested id,
    zero messages, and nothing in storage until save_channel() runs.
    """
    channel_id: str
    channel_hash: bytes
    messages: PersistentVector[MessageRecord]
    persisted: bool = False

    @property
    def num_messages(self) -> int:
        return len(self.messages)


@dataclass(slots=True)
class ChatState:
    """Mutable aggregate counters for the chat tenant."""
    num_channels: int = 0
    total_num_messages: int = 0

    @classmethod
    def from_root(cls, root: RootState) -> ChatState:
        return cls(num_channels=root.num_channels, total_num_messages=root.total_num_messages)

    def to_root(self) -> RootState:
        return RootState(
            num_channels=self.num_channels,
            total_num_messages=self.total_num_messages,
        )
