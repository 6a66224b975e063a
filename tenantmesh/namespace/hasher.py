"""
Namespacing Hasher: Collision-Resistant Storage Addresses

Every storage key is derived here and nowhere else:

    storage_address(tag, tenant, key) = tag ++ H(tenant) ++ H(key)
    channel_address(channel_id)       = H(channel_id)
    messages_prefix(channel_hash)     = b"m" ++ channel_hash

Each component is hashed on its own rather than hashing a concatenation,
so ("ab", "c") and ("a", "bc") land on unrelated addresses. Digests have
a fixed size, so the address layout is unambiguous.

Complexity: O(len(tenant) + len(key))
"""

from __future__ import annotations

import hashlib
from typing import Callable

from tenantmesh.core import constants as C
from tenantmesh.core.types import StorageAddress

HashFunction = Callable[[bytes], bytes]


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


class NamespaceHasher:
    """
    Derives storage addresses from variable-length identifiers.

    Pure: the same inputs always give the same address.
    """

    __slots__ = ("_hash",)

    def __init__(self, hash_fn: HashFunction = sha256) -> None:
        self._hash = hash_fn

    def digest(self, value: str) -> bytes:
        return self._hash(value.encode("utf-8"))

    def storage_address(self, prefix_tag: bytes, tenant_id: str, key: str) -> StorageAddress:
        return StorageAddress(prefix_tag + self.digest(tenant_id) + self.digest(key))

    def tenant_value_address(self, tenant_id: str, key: str) -> StorageAddress:
        """Address of a generic-store value."""
        return self.storage_address(C.TENANT_VALUE_TAG, tenant_id, key)

    def channel_address(self, channel_id: str) -> bytes:
        """Channel map lookup key, also the seed of its message namespace."""
        return self.digest(channel_id)

    def messages_prefix(self, channel_hash: bytes) -> bytes:
        return C.MESSAGES_TAG + channel_hash
