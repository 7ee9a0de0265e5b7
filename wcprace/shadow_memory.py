"""Address-keyed store of lock and variable metadata."""

from __future__ import annotations

import threading
from typing import Union

from .model import Lock, LockMetadata, Variable, VariableMetadata

SHADOW_SIZE = 1 << 45
_POINTER_SIZE = 8
_BUCKET_COUNT = SHADOW_SIZE // _POINTER_SIZE

_Metadata = Union[LockMetadata, VariableMetadata]


def bucket_index(addr: int) -> int:
    """The shadow bucket an address falls into."""
    return (addr >> 2) % _BUCKET_COUNT


class ShadowMemory:
    """Holds metadata for every lock and variable seen, created on first use."""

    def __init__(self, max_threads: int) -> None:
        self._max_threads = max_threads
        self._buckets: dict[int, list[_Metadata]] = {}
        self._guard = threading.Lock()

    def lock_metadata(self, lock: Lock) -> LockMetadata:
        """Return the metadata for a lock, creating it if it does not exist."""
        with self._guard:
            bucket = self._buckets.setdefault(bucket_index(lock.addr), [])
            for node in bucket:
                if isinstance(node, LockMetadata) and node.lock == lock:
                    return node
            md = LockMetadata(self._max_threads, lock)
            bucket.insert(0, md)
            return md

    def variable_metadata(self, variable: Variable) -> VariableMetadata:
        """Return the metadata for a variable, creating it if it does not exist."""
        with self._guard:
            bucket = self._buckets.setdefault(bucket_index(variable.addr), [])
            for node in bucket:
                if isinstance(node, VariableMetadata) and node.variable == variable:
                    return node
            md = VariableMetadata(self._max_threads, variable)
            bucket.insert(0, md)
            return md