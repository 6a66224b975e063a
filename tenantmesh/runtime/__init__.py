"""Invocation runtime: serialization, staging and commit/discard."""

from tenantmesh.runtime.runtime import ContractRuntime

__all__ = ["ContractRuntime"]
