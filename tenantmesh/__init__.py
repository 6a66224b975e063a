"""
Tenant Mesh: Hash-Namespaced Multi-Tenant Key-Value Store

One flat byte-keyed backend shared by many tenants:
- Generic Store: privileged set/remove, open get, isolated per tenant by
  b"a" ++ sha256(tenant) ++ sha256(key)
- Chat tenant: append-only channels with a paginated JSON protocol
- Runtime: serialized invocations, staged writes, all-or-nothing commit
- Backends: in-memory, Redis/Valkey

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from tenantmesh.core.types import Result, Ok, Err
from tenantmesh.core.errors import (
    TenantMeshError,
    StorageError,
    ValidationError,
    ProtocolError,
    AuthorizationError,
    StateError,
)
from tenantmesh.core.config import TenantMeshConfig
from tenantmesh.storage import InMemoryBackend, StorageConfig, create_backend
from tenantmesh.runtime import ContractRuntime

__all__ = [
    "__version__",
    "Result",
    "Ok",
    "Err",
    "TenantMeshError",
    "StorageError",
    "ValidationError",
    "ProtocolError",
    "AuthorizationError",
    "StateError",
    "TenantMeshConfig",
    "InMemoryBackend",
    "StorageConfig",
    "create_backend",
    "ContractRuntime",
]
