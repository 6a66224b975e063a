"""
Backend Factory

Maps a StorageConfig onto a concrete KeyValueBackend. The Redis module
is imported only when a Redis backend is requested.
"""

from __future__ import annotations

import logging

from tenantmesh.core.errors import InternalError
from tenantmesh.storage.backends import InMemoryBackend
from tenantmesh.storage.config import BackendType, StorageConfig
from tenantmesh.storage.protocols import KeyValueBackend

logger = logging.getLogger(__name__)


def create_backend(config: StorageConfig) -> KeyValueBackend:
    """
    Build the backend named by config.

    Redis backends connect lazily on first use; call connect() to fail fast.
    """
    if config.backend == BackendType.IN_MEMORY:
        logger.info("Using in-memory storage backend")
        return InMemoryBackend()

    from tenantmesh.storage.redis_store import RedisBackend

    redis_config = config.redis_config
    if redis_config is None:
        raise InternalError.configuration(
            f"redis_config required for the {config.backend.name} backend"
        )
    logger.info(
        "Using %s storage backend at %s:%d",
        config.backend.name.lower(), redis_config.host, redis_config.port,
    )
    return RedisBackend(redis_config)
