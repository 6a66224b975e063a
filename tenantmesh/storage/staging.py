"""
Staging Buffer: Per-Invocation Write Isolation

Every invocation runs against a StagedStorage wrapping the backend:
- Reads see the invocation's own writes first, then the backend
- Writes and removals are buffered in order of last touch
- commit() hands the buffer to the backend as one atomic batch
- discard() drops it; the backend never sees a partial invocation
"""

from __future__ import annotations

from typing import Dict, Optional

from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Ok, Result
from tenantmesh.storage.protocols import KeyValueBackend, StagedWrite


class StagedStorage:
    """
    Copy-on-write view over a KeyValueBackend for one invocation.

    Not thread-safe: the runtime serializes invocations.

    Example:
        staged = StagedStorage(backend)
        staged.write(b"k", b"v")
        staged.read(b"k").unwrap()   # b"v", backend still empty
        staged.commit()
    """

    __slots__ = ("_backend", "_pending", "_closed")

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend
        # None marks a pending removal
        self._pending: Dict[bytes, Optional[bytes]] = {}
        self._closed = False

    def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
        if key in self._pending:
            return Ok(self._pending[key])
        return self._backend.read(key)

    def has_key(self, key: bytes) -> Result[bool, StorageError]:
        return self.read(key).map(lambda value: value is not None)

    def write(self, key: bytes, value: bytes) -> None:
        self._check_open()
        self._pending.pop(key, None)
        self._pending[key] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._check_open()
        self._pending.pop(key, None)
        self._pending[key] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending(self) -> list[StagedWrite]:
        return [StagedWrite(key=k, value=v) for k, v in self._pending.items()]

    def commit(self) -> Result[int, StorageError]:
        """Apply every staged write atomically, then close the view."""
        self._check_open()
        result = self._backend.apply_batch(self.pending())
        self._pending.clear()
        self._closed = True
        return result

    def discard(self) -> int:
        """Drop every staged write. Returns how many were dropped."""
        dropped = len(self._pending)
        self._pending.clear()
        self._closed = True
        return dropped

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("StagedStorage already committed or discarded")
