"""
Backend Configuration Module
============================

Type-safe, immutable configuration dataclasses for the key-value backends.
All configurations use frozen dataclasses for thread-safety and hash-ability.

Design Principles:
------------------
1. **Immutability**: All configs are frozen to prevent runtime mutation
2. **Validation**: Pre-conditions checked at construction time
3. **Defaults**: In-memory backend for development; explicit Redis for production
4. **Environment**: Supports loading from environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

from tenantmesh.core import constants as C


# =============================================================================
# ENUMERATIONS
# =============================================================================

class BackendType(Enum):
    """
    Storage backend type enumeration.

    Used for factory pattern dispatch and configuration validation.
    """
    IN_MEMORY = auto()  # Development/testing only
    REDIS = auto()      # Durable, shared across processes
    VALKEY = auto()     # Redis-compatible OSS alternative


class RedisMode(Enum):
    """
    Redis deployment topology.

    Cluster mode is not offered: a staged batch must commit inside a
    single MULTI/EXEC, which cannot span hash slots.
    """
    STANDALONE = auto()
    SENTINEL = auto()


# =============================================================================
# REDIS CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class RedisConfig:
    """
    Redis/Valkey connection configuration.

    Attributes:
        host: Redis server hostname or IP address.
        port: Redis server port (1-65535).
        password: Optional authentication password.
        db: Logical database index (0-15).
        key_prefix: Prepended to every raw storage key so several stores
            can share one Redis database.
        mode: Deployment topology (standalone/sentinel).
        sentinel_hosts: (host, port) tuples for Sentinel mode.
        sentinel_service: Master name monitored by Sentinel.
        max_connections: Connection pool size. Must be > 0.
        connect_timeout_ms: TCP connection timeout in milliseconds.
        socket_timeout_ms: Socket read/write timeout in milliseconds.
        ssl: Enable TLS encryption for connections.

    Example:
        >>> config = RedisConfig.from_env()
        >>> config = RedisConfig(host="redis.example.com", password="secret")
    """
    sentinel_hosts: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    password: Optional[str] = None
    host: str = "localhost"
    key_prefix: str = C.DEFAULT_REDIS_KEY_PREFIX
    sentinel_service: str = "mymaster"

    socket_timeout_ms: int = 5000
    connect_timeout_ms: int = 2000
    max_connections: int = 50
    port: int = 6379
    db: int = 0
    mode: RedisMode = RedisMode.STANDALONE

    ssl: bool = False

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be in [1, 65535], got {self.port}")

        if not (0 <= self.db <= 15):
            raise ValueError(f"db must be in [0, 15], got {self.db}")

        if self.max_connections <= 0:
            raise ValueError(f"max_connections must be > 0, got {self.max_connections}")

        if self.connect_timeout_ms <= 0:
            raise ValueError(f"connect_timeout_ms must be > 0, got {self.connect_timeout_ms}")
        if self.socket_timeout_ms <= 0:
            raise ValueError(f"socket_timeout_ms must be > 0, got {self.socket_timeout_ms}")

        if self.mode == RedisMode.SENTINEL and len(self.sentinel_hosts) == 0:
            raise ValueError("sentinel_hosts required when mode == SENTINEL")

    @classmethod
    def from_env(cls, prefix: str = "REDIS") -> "RedisConfig":
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_HOST: Server hostname (default: localhost)
        - {prefix}_PORT: Server port (default: 6379)
        - {prefix}_PASSWORD: Authentication password
        - {prefix}_DB: Database index (default: 0)
        - {prefix}_KEY_PREFIX: Raw key prefix (default: tenantmesh:)
        - {prefix}_SSL: Enable TLS (default: false)
        - {prefix}_MAX_CONNECTIONS: Pool size (default: 50)
        - {prefix}_MODE: standalone|sentinel
        - {prefix}_SENTINEL_HOSTS: Comma-separated host:port pairs
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        def _get_bool(key: str, default: bool) -> bool:
            val = _get(key).lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        mode_map = {
            "standalone": RedisMode.STANDALONE,
            "sentinel": RedisMode.SENTINEL,
        }
        mode = mode_map.get(_get("MODE", "standalone").lower(), RedisMode.STANDALONE)

        sentinel_hosts: Tuple[Tuple[str, int], ...] = tuple()
        sentinel_str = _get("SENTINEL_HOSTS")
        if sentinel_str:
            parsed: List[Tuple[str, int]] = []
            for entry in sentinel_str.split(","):
                host_port = entry.strip().split(":")
                if len(host_port) == 2:
                    parsed.append((host_port[0], int(host_port[1])))
            sentinel_hosts = tuple(parsed)

        return cls(
            host=_get("HOST", "localhost"),
            port=_get_int("PORT", 6379),
            password=_get("PASSWORD") or None,
            db=_get_int("DB", 0),
            key_prefix=_get("KEY_PREFIX", C.DEFAULT_REDIS_KEY_PREFIX),
            mode=mode,
            sentinel_hosts=sentinel_hosts,
            sentinel_service=_get("SENTINEL_SERVICE", "mymaster"),
            max_connections=_get_int("MAX_CONNECTIONS", 50),
            connect_timeout_ms=_get_int("CONNECT_TIMEOUT_MS", 2000),
            socket_timeout_ms=_get_int("SOCKET_TIMEOUT_MS", 5000),
            ssl=_get_bool("SSL", False),
        )

    def get_connection_kwargs(self) -> Dict[str, Any]:
        """
        Generate kwargs for a redis-py connection.

        Responses stay as raw bytes: keys and values are binary.
        """
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "max_connections": self.max_connections,
            "socket_connect_timeout": self.connect_timeout_ms / 1000.0,
            "socket_timeout": self.socket_timeout_ms / 1000.0,
            "decode_responses": False,
            "ssl": self.ssl,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs


# =============================================================================
# UNIFIED STORAGE CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class StorageConfig:
    """
    Backend selection for the store.

    Attributes:
        backend: Backend type.
        redis_config: Required when backend is REDIS/VALKEY.
    """
    backend: BackendType = BackendType.IN_MEMORY
    redis_config: Optional[RedisConfig] = None

    def __post_init__(self) -> None:
        if self.backend in (BackendType.REDIS, BackendType.VALKEY):
            if self.redis_config is None:
                raise ValueError(
                    f"redis_config required when backend={self.backend.name}"
                )

    @classmethod
    def for_development(cls) -> "StorageConfig":
        """In-memory backend, zero external dependencies."""
        return cls(backend=BackendType.IN_MEMORY)

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Construct configuration from environment.

        Environment Variables:
        - STORAGE_BACKEND: in_memory|redis|valkey

        Plus REDIS_* variables when a Redis backend is selected.
        """
        backend_map = {
            "in_memory": BackendType.IN_MEMORY,
            "memory": BackendType.IN_MEMORY,
            "redis": BackendType.REDIS,
            "valkey": BackendType.VALKEY,
        }
        backend_str = os.environ.get("STORAGE_BACKEND", "in_memory").lower()
        backend = backend_map.get(backend_str, BackendType.IN_MEMORY)

        redis_config = None
        if backend in (BackendType.REDIS, BackendType.VALKEY):
            redis_config = RedisConfig.from_env()

        return cls(backend=backend, redis_config=redis_config)


__all__ = [
    "BackendType",
    "RedisMode",
    "RedisConfig",
    "StorageConfig",
]
