"""
Host Environment: What a Contract Method May Touch

A contract method never reaches for globals. Everything it needs comes
from the HostEnvironment handed to it for one invocation:
- storage (the invocation's staging buffer)
- sha256
- caller and self identities
- the invocation timestamp

InvocationContext is the concrete, local implementation the runtime
builds per call.
"""

from __future__ import annotations

import threading
import time
from abc import abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from tenantmesh.namespace.hasher import sha256
from tenantmesh.storage.protocols import StorageView


@runtime_checkable
class HostEnvironment(Protocol):
    """Collaborators consumed by the core."""

    @property
    @abstractmethod
    def storage(self) -> StorageView:
        ...

    @abstractmethod
    def sha256(self, data: bytes) -> bytes:
        ...

    @abstractmethod
    def caller_identity(self) -> str:
        ...

    @abstractmethod
    def self_identity(self) -> str:
        ...

    @abstractmethod
    def current_timestamp_ns(self) -> int:
        ...


class MonotonicClock:
    """
    Wall-clock nanoseconds that never go backwards.

    Wraps a time source (time.time_ns by default); if the source steps
    back, the last reading is repeated.
    """

    __slots__ = ("_source", "_last", "_lock")

    def __init__(self, source: Optional[Callable[[], int]] = None) -> None:
        self._source = source or time.time_ns
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now = self._source()
            if now > self._last:
                self._last = now
            return self._last


@dataclass(frozen=True)
class InvocationContext:
    """
    Host environment for exactly one invocation.

    The timestamp is captured once when the invocation starts, so every
    message posted within it carries the same time.
    """

    storage_view: StorageView
    caller_id: str
    self_id: str
    timestamp_ns: int

    @property
    def storage(self) -> StorageView:
        return self.storage_view

    def sha256(self, data: bytes) -> bytes:
        return sha256(data)

    def caller_identity(self) -> str:
        return self.caller_id

    def self_identity(self) -> str:
        return self.self_id

    def current_timestamp_ns(self) -> int:
        return self.timestamp_ns
