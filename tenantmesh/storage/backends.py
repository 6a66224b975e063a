"""
In-Memory Backend: Development and Testing Implementation

Provides a dict-backed implementation of KeyValueBackend:
- Byte keys, byte values
- Thread-safe via a single lock
- All-or-nothing batch apply
- Prefix scans in key order for inspection and tests

Performance Characteristics:
    - Read/Write/Remove: O(1) average case
    - Batch: O(n) where n is write count
    - Scan: O(N log N) over the whole keyspace
"""

from __future__ import annotations

import threading
from typing import Dict, Iterator, Optional, Sequence

from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Ok, Result
from tenantmesh.storage.protocols import StagedWrite


class InMemoryBackend:
    """
    In-memory flat key-value backend.

    Thread Safety:
        All operations are protected by threading.Lock. Batch apply
        holds the lock for the whole batch, so readers never observe
        a half-applied batch.

    Example:
        backend = InMemoryBackend()
        backend.write(b"k", b"v")
        backend.read(b"k").unwrap()  # b"v"
    """

    __slots__ = ("_data", "_lock", "_batches_applied")

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.Lock()
        self._batches_applied = 0

    def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
        with self._lock:
            return Ok(self._data.get(key))

    def write(self, key: bytes, value: bytes) -> Result[None, StorageError]:
        with self._lock:
            self._data[key] = bytes(value)
        return Ok(None)

    def remove(self, key: bytes) -> Result[None, StorageError]:
        with self._lock:
            self._data.pop(key, None)
        return Ok(None)

    def apply_batch(self, writes: Sequence[StagedWrite]) -> Result[int, StorageError]:
        with self._lock:
            for staged in writes:
                if staged.value is None:
                    self._data.pop(staged.key, None)
                else:
                    self._data[staged.key] = staged.value
            self._batches_applied += 1
        return Ok(len(writes))

    def scan(self, prefix: bytes = b"") -> Iterator[tuple[bytes, bytes]]:
        with self._lock:
            items = sorted(
                (k, v) for k, v in self._data.items() if k.startswith(prefix)
            )
        yield from items

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def count(self, prefix: bytes = b"") -> int:
        """Number of stored keys starting with prefix."""
        with self._lock:
            return sum(1 for k in self._data if k.startswith(prefix))

    def snapshot(self) -> Dict[bytes, bytes]:
        """Copy of the whole keyspace (for tests)."""
        with self._lock:
            return dict(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    @property
    def batches_applied(self) -> int:
        return self._batches_applied
