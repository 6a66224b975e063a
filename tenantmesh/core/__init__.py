"""
Core module: Type definitions, error hierarchy, validation and configuration.

This module provides the foundational abstractions for the store:
- Result/Either monads for zero-exception control flow
- Coded error hierarchy with pattern matching support
- Identifier validation
- Configuration management with validation
"""

from tenantmesh.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    StorageAddress,
)
from tenantmesh.core.errors import (
    ErrorCode,
    TenantMeshError,
    StorageError,
    ValidationError,
    ProtocolError,
    AuthorizationError,
    StateError,
    InternalError,
)
from tenantmesh.core.validation import validate_tenant_id, validate_channel_id, validate_utf8
from tenantmesh.core.config import TenantMeshConfig, ContractConfig, ObservabilityConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "StorageAddress",
    "ErrorCode",
    "TenantMeshError",
    "StorageError",
    "ValidationError",
    "ProtocolError",
    "AuthorizationError",
    "StateError",
    "InternalError",
    "validate_tenant_id",
    "validate_channel_id",
    "validate_utf8",
    "TenantMeshConfig",
    "ContractConfig",
    "ObservabilityConfig",
]
