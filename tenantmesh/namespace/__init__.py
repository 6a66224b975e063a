"""Namespacing: hash-derived storage addresses."""

from tenantmesh.namespace.hasher import NamespaceHasher, sha256

__all__ = ["NamespaceHasher", "sha256"]
