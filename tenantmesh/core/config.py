"""
Configuration Management for the Tenant Mesh Store

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from tenantmesh.core import constants as C
from tenantmesh.core.types import Err, Ok, Result
from tenantmesh.storage.config import StorageConfig


@dataclass(frozen=True)
class ContractConfig:
    """Store identity and record encoding."""

    self_id: str = C.DEFAULT_SELF_ID
    compression_threshold_bytes: int = C.COMPRESSION_THRESHOLD_BYTES


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging and metrics configuration."""

    metrics_enabled: bool = True
    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class TenantMeshConfig:
    """Root configuration."""

    contract: ContractConfig = field(default_factory=ContractConfig)
    storage: StorageConfig = field(default_factory=StorageConfig.for_development)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[TenantMeshConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with TENANTMESH_.
        Example: TENANTMESH_SELF_ID, TENANTMESH_LOG_LEVEL
        Storage selection uses STORAGE_BACKEND and REDIS_*.
        """
        def _get_bool(key: str, default: bool) -> bool:
            val = os.getenv(key, "").lower()
            return val in ("true", "1", "yes") if val else default

        try:
            contract = ContractConfig(
                self_id=os.getenv("TENANTMESH_SELF_ID", C.DEFAULT_SELF_ID),
                compression_threshold_bytes=int(
                    os.getenv(
                        "TENANTMESH_COMPRESSION_THRESHOLD_BYTES",
                        str(C.COMPRESSION_THRESHOLD_BYTES),
                    )
                ),
            )

            observability = ObservabilityConfig(
                metrics_enabled=_get_bool("TENANTMESH_METRICS_ENABLED", True),
                log_level=os.getenv("TENANTMESH_LOG_LEVEL", "INFO").upper(),
                log_json=_get_bool("TENANTMESH_LOG_JSON", True),
            )

            storage = StorageConfig.from_env()

            return Ok(cls(contract=contract, storage=storage, observability=observability))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.contract.self_id:
            return Err("self_id must not be empty")
        if self.contract.compression_threshold_bytes < 0:
            return Err("compression_threshold_bytes must be >= 0")
        if self.observability.log_level not in {
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
        }:
            return Err(f"Unknown log level: {self.observability.log_level}")
        return Ok(None)
