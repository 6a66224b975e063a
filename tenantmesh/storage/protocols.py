"""
Storage Protocol Definitions: Flat Byte Key-Value Abstraction
=============================================================

Provides structural subtyping protocols (PEP 544) for pluggable backends:
- KeyValueBackend: raw read/write/remove plus atomic batch apply
- StorageView: the read/write/remove surface a contract method sees
  during one invocation (implemented by the staging buffer)

Design Principles:
    - Zero-exception control flow via Result[T, E] monad
    - Keys and values are opaque bytes; namespacing happens above this layer
    - A batch is applied all-or-nothing
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Protocol, Sequence, runtime_checkable

from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Result


# =============================================================================
# OPERATION TYPE
# =============================================================================
class OperationType(Enum):
    """Backend operation types for logging and metrics."""
    READ = "read"
    WRITE = "write"
    REMOVE = "remove"
    BATCH = "batch"
    SCAN = "scan"


# =============================================================================
# STAGED WRITE
# =============================================================================
@dataclass(frozen=True, slots=True)
class StagedWrite:
    """
    One pending mutation in an invocation's staging buffer.

    value is None for removals.
    """
    key: bytes
    value: Optional[bytes]

    @property
    def operation(self) -> OperationType:
        return OperationType.REMOVE if self.value is None else OperationType.WRITE


# =============================================================================
# BACKEND PROTOCOL
# =============================================================================
@runtime_checkable
class KeyValueBackend(Protocol):
    """
    Persistent flat key-value storage.

    Example:
        class MyBackend(KeyValueBackend):
            def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
                ...
    """

    @abstractmethod
    def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
        """
        Retrieve value by key.

        Returns:
            Ok(bytes): Value found
            Ok(None): Key absent (not an error)
            Err(StorageError): Backend failure
        """
        ...

    @abstractmethod
    def write(self, key: bytes, value: bytes) -> Result[None, StorageError]:
        """Insert or overwrite value (upsert semantics)."""
        ...

    @abstractmethod
    def remove(self, key: bytes) -> Result[None, StorageError]:
        """Delete key. Removing an absent key succeeds."""
        ...

    @abstractmethod
    def apply_batch(self, writes: Sequence[StagedWrite]) -> Result[int, StorageError]:
        """
        Apply every write or none of them.

        Returns:
            Ok(count): Number of writes applied
        """
        ...

    @abstractmethod
    def scan(self, prefix: bytes = b"") -> Iterator[tuple[bytes, bytes]]:
        """Iterate (key, value) pairs whose key starts with prefix."""
        ...


# =============================================================================
# INVOCATION VIEW PROTOCOL
# =============================================================================
@runtime_checkable
class StorageView(Protocol):
    """
    Storage as seen from inside a single invocation.

    Writes are visible to later reads in the same invocation and become
    durable only when the invocation commits.
    """

    @abstractmethod
    def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
        ...

    @abstractmethod
    def write(self, key: bytes, value: bytes) -> None:
        ...

    @abstractmethod
    def remove(self, key: bytes) -> None:
        ...

    @abstractmethod
    def has_key(self, key: bytes) -> Result[bool, StorageError]:
        ...
