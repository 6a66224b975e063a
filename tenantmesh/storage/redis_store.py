"""
Redis Key-Value Backend
=======================

Redis/Valkey implementation of KeyValueBackend.

Design Principles:
------------------
1. **Raw Bytes**: Storage keys are binary hashes; responses are never decoded
2. **Key Prefixing**: Every raw key lives under a configurable prefix
3. **Atomic Batches**: Staged writes commit through one MULTI/EXEC pipeline
4. **Result Monad**: No exceptions for control flow

Algorithmic Complexity:
-----------------------
| Operation    | Time     | Notes                         |
|--------------|----------|-------------------------------|
| read         | O(1)     | GET                           |
| write        | O(1)     | SET                           |
| remove       | O(1)     | DEL                           |
| apply_batch  | O(k)     | k writes, single round-trip   |
| scan         | O(N)     | N = keyspace, SCAN iteration  |
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Err, Ok, Result
from tenantmesh.storage.config import RedisConfig, RedisMode
from tenantmesh.storage.protocols import StagedWrite


# =============================================================================
# CONSTANTS
# =============================================================================

# Redis SCAN count hint
MAX_SCAN_COUNT: int = 1000

_GLOB_SPECIAL = frozenset(b"*?[]\\")


def _glob_escape(raw: bytes) -> bytes:
    """Escape glob metacharacters so binary prefixes match literally."""
    out = bytearray()
    for byte in raw:
        if byte in _GLOB_SPECIAL:
            out.append(ord("\\"))
        out.append(byte)
    return bytes(out)


# =============================================================================
# METRICS
# =============================================================================

@dataclass(slots=True)
class RedisMetrics:
    """
    Nanosecond-precision counters for Redis operations.

    Updated under the runtime's invocation lock, so plain ints suffice.
    """
    read_count: int = 0
    write_count: int = 0
    remove_count: int = 0
    batch_count: int = 0
    scan_count: int = 0

    read_latency_sum_ns: int = 0
    batch_latency_sum_ns: int = 0

    connection_errors: int = 0
    timeout_errors: int = 0

    def record_read(self, latency_ns: int) -> None:
        self.read_count += 1
        self.read_latency_sum_ns += latency_ns

    def record_batch(self, latency_ns: int) -> None:
        self.batch_count += 1
        self.batch_latency_sum_ns += latency_ns


# =============================================================================
# REDIS BACKEND
# =============================================================================

class RedisBackend:
    """
    Redis/Valkey backend implementing KeyValueBackend.

    Memory Model:
    -------------
    Each storage key maps to one Redis string under
    `config.key_prefix + raw_key`.

    Example:
        >>> backend = RedisBackend(RedisConfig(host="redis.example.com"))
        >>> backend.connect()
        >>> backend.write(b"k", b"v")
        >>> backend.close()
    """

    __slots__ = ("_config", "_client", "_prefix", "_metrics")

    def __init__(
        self,
        config: RedisConfig,
        client: Optional[Any] = None,
    ) -> None:
        """
        Args:
            config: Redis connection configuration.
            client: Pre-built redis client; when omitted `connect()`
                builds one from config.
        """
        self._config = config
        self._client = client
        self._prefix = config.key_prefix.encode("utf-8")
        self._metrics = RedisMetrics()

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    def connect(self) -> Result[None, StorageError]:
        """
        Build the client and verify the server answers PING.

        Safe to call when a client was injected.
        """
        try:
            if self._client is None:
                kwargs = self._config.get_connection_kwargs()
                if self._config.mode == RedisMode.SENTINEL:
                    from redis.sentinel import Sentinel

                    sentinel = Sentinel(
                        list(self._config.sentinel_hosts),
                        socket_timeout=self._config.socket_timeout_ms / 1000,
                    )
                    kwargs.pop("host")
                    kwargs.pop("port")
                    self._client = sentinel.master_for(
                        self._config.sentinel_service,
                        redis_class=redis.Redis,
                        **kwargs,
                    )
                else:
                    self._client = redis.Redis(**kwargs)
            self._client.ping()
            return Ok(None)
        except RedisError as e:
            self._metrics.connection_errors += 1
            self._client = None
            return Err(StorageError.connection_failed(
                self._config.host, self._config.port, cause=e,
            ))

    def close(self) -> None:
        """Close the connection pool. Safe to call multiple times."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _ensure_client(self) -> Result[Any, StorageError]:
        if self._client is None:
            connected = self.connect()
            if connected.is_err():
                return connected
        return Ok(self._client)

    def _full_key(self, key: bytes) -> bytes:
        return self._prefix + key

    def _wrap_error(self, operation: str, error: RedisError) -> StorageError:
        if isinstance(error, RedisTimeoutError):
            self._metrics.timeout_errors += 1
            return StorageError.timeout(operation, cause=error)
        self._metrics.connection_errors += 1
        if isinstance(error, RedisConnectionError):
            return StorageError.connection_failed(
                self._config.host, self._config.port, cause=error,
            )
        return StorageError.commit_failed(0, cause=error).with_context(
            operation=operation,
        )

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    def read(self, key: bytes) -> Result[Optional[bytes], StorageError]:
        client = self._ensure_client()
        if client.is_err():
            return client

        start_ns = time.perf_counter_ns()
        try:
            value = client.unwrap().get(self._full_key(key))
        except RedisError as e:
            return Err(self._wrap_error("read", e))

        self._metrics.record_read(time.perf_counter_ns() - start_ns)
        return Ok(None if value is None else bytes(value))

    def write(self, key: bytes, value: bytes) -> Result[None, StorageError]:
        client = self._ensure_client()
        if client.is_err():
            return client
        try:
            client.unwrap().set(self._full_key(key), value)
        except RedisError as e:
            return Err(self._wrap_error("write", e))
        self._metrics.write_count += 1
        return Ok(None)

    def remove(self, key: bytes) -> Result[None, StorageError]:
        client = self._ensure_client()
        if client.is_err():
            return client
        try:
            client.unwrap().delete(self._full_key(key))
        except RedisError as e:
            return Err(self._wrap_error("remove", e))
        self._metrics.remove_count += 1
        return Ok(None)

    def apply_batch(self, writes: Sequence[StagedWrite]) -> Result[int, StorageError]:
        """
        Apply staged writes inside MULTI/EXEC.

        Either every SET/DEL lands or none does.
        """
        if not writes:
            return Ok(0)

        client = self._ensure_client()
        if client.is_err():
            return client

        start_ns = time.perf_counter_ns()
        try:
            with client.unwrap().pipeline(transaction=True) as pipe:
                for staged in writes:
                    full_key = self._full_key(staged.key)
                    if staged.value is None:
                        pipe.delete(full_key)
                    else:
                        pipe.set(full_key, staged.value)
                pipe.execute()
        except RedisError as e:
            self._metrics.connection_errors += 1
            return Err(StorageError.commit_failed(len(writes), cause=e))

        self._metrics.record_batch(time.perf_counter_ns() - start_ns)
        return Ok(len(writes))

    def scan(self, prefix: bytes = b"") -> Iterator[tuple[bytes, bytes]]:
        """
        Iterate (key, value) pairs under prefix, keys without the Redis prefix.

        Uses SCAN, so the keyspace may change between pages.
        """
        client = self._ensure_client()
        if client.is_err():
            raise client.error

        pattern = _glob_escape(self._full_key(prefix)) + b"*"
        self._metrics.scan_count += 1
        for full_key in client.unwrap().scan_iter(match=pattern, count=MAX_SCAN_COUNT):
            value = client.unwrap().get(full_key)
            if value is not None:
                yield bytes(full_key)[len(self._prefix):], bytes(value)

    # -------------------------------------------------------------------------
    # UTILITY
    # -------------------------------------------------------------------------

    def count(self, prefix: bytes = b"") -> int:
        return sum(1 for _ in self.scan(prefix))

    @property
    def metrics(self) -> RedisMetrics:
        return self._metrics


__all__ = [
    "RedisBackend",
    "RedisMetrics",
]
