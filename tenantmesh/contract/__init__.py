"""Contract surface: the generic tenant store."""

from tenantmesh.contract.store import TenantStore, load_state, persist_state

__all__ = ["TenantStore", "load_state", "persist_state"]
