"""
Storage Module: Flat Byte-Keyed Backends
========================================

Provides:
- Protocol definitions for pluggable backends
- In-memory backend for development/testing
- Redis/Valkey backend (loaded lazily by the factory)
- Per-invocation staging buffer with atomic commit
- Binary record codec and persistent map/vector collections

Example:
    >>> backend = create_backend(StorageConfig.for_development())
    >>> staged = StagedStorage(backend)
    >>> staged.write(b"k", b"v")
    >>> staged.commit()
"""

from __future__ import annotations

from tenantmesh.storage.protocols import (
    OperationType,
    StagedWrite,
    KeyValueBackend,
    StorageView,
)
from tenantmesh.storage.backends import InMemoryBackend
from tenantmesh.storage.config import (
    BackendType,
    RedisMode,
    RedisConfig,
    StorageConfig,
)
from tenantmesh.storage.staging import StagedStorage
from tenantmesh.storage.collections import PersistentMap, PersistentVector
from tenantmesh.storage.factory import create_backend

__all__ = [
    "OperationType",
    "StagedWrite",
    "KeyValueBackend",
    "StorageView",
    "InMemoryBackend",
    "BackendType",
    "RedisMode",
    "RedisConfig",
    "StorageConfig",
    "StagedStorage",
    "PersistentMap",
    "PersistentVector",
    "create_backend",
]
