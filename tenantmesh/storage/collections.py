"""
Persistent Collections over a Flat StorageView

- PersistentMap: prefix ++ key -> encoded value
- PersistentVector: prefix ++ u64be(index) -> encoded element, with the
  length held by the owner (the channel record) rather than in storage

Both are thin, stateless-beyond-length wrappers: every mutation goes
straight into the invocation's staging buffer.
"""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

from tenantmesh.core.errors import StorageError
from tenantmesh.core.types import Err, Ok, Result
from tenantmesh.storage.codec import encode_index
from tenantmesh.storage.protocols import StorageView

V = TypeVar("V")

Encoder = Callable[[V], bytes]
Decoder = Callable[[bytes], Result[V, StorageError]]


class PersistentMap(Generic[V]):
    """
    Byte-keyed map stored under a one-byte prefix.

    Example:
        channels = PersistentMap(b"c", storage, encode_channel, decode_channel)
        channels.insert(channel_hash, record)
    """

    __slots__ = ("_prefix", "_storage", "_encode", "_decode")

    def __init__(
        self,
        prefix: bytes,
        storage: StorageView,
        encode: Encoder,
        decode: Decoder,
    ) -> None:
        self._prefix = prefix
        self._storage = storage
        self._encode = encode
        self._decode = decode

    def raw_key(self, key: bytes) -> bytes:
        return self._prefix + key

    def get(self, key: bytes) -> Result[Optional[V], StorageError]:
        raw = self._storage.read(self.raw_key(key))
        if raw.is_err():
            return raw
        data = raw.unwrap()
        if data is None:
            return Ok(None)
        return self._decode(data)

    def contains(self, key: bytes) -> Result[bool, StorageError]:
        return self._storage.has_key(self.raw_key(key))

    def insert(self, key: bytes, value: V) -> Result[bool, StorageError]:
        """
        Store value under key.

        Returns:
            Ok(True): key was new
            Ok(False): existing entry overwritten
        """
        existed = self.contains(key)
        if existed.is_err():
            return existed
        self._storage.write(self.raw_key(key), self._encode(value))
        return Ok(not existed.unwrap())


class PersistentVector(Generic[V]):
    """
    Append-only vector stored as one key per element.

    Index i is assigned to the i-th push and never reused.
    """

    __slots__ = ("_prefix", "_length", "_storage", "_encode", "_decode")

    def __init__(
        self,
        prefix: bytes,
        length: int,
        storage: StorageView,
        encode: Encoder,
        decode: Decoder,
    ) -> None:
        self._prefix = prefix
        self._length = length
        self._storage = storage
        self._encode = encode
        self._decode = decode

    def __len__(self) -> int:
        return self._length

    @property
    def prefix(self) -> bytes:
        return self._prefix

    def index_key(self, index: int) -> bytes:
        return self._prefix + encode_index(index)

    def push(self, element: V) -> int:
        """Append element and return its index."""
        index = self._length
        self._storage.write(self.index_key(index), self._encode(element))
        self._length += 1
        return index

    def get(self, index: int) -> Result[Optional[V], StorageError]:
        if index < 0 or index >= self._length:
            return Ok(None)
        raw = self._storage.read(self.index_key(index))
        if raw.is_err():
            return raw
        data = raw.unwrap()
        if data is None:
            return Err(StorageError.corruption(
                f"vector element {index} missing below length {self._length}",
                key_hex=self.index_key(index).hex(),
            ))
        return self._decode(data)

    def slice(self, from_index: int, limit: int) -> Result[list[V], StorageError]:
        """Up to `limit` elements starting at `from_index`; [] when out of range."""
        items: list[V] = []
        index = from_index
        while len(items) < limit and index < self._length:
            element = self.get(index)
            if element.is_err():
                return element
            items.append(element.unwrap())
            index += 1
        return Ok(items)
