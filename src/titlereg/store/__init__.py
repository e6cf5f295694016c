"""Store backends.

The registry only depends on the :class:`KeyValueStore` contract; stores
that also implement :class:`VersionedStore` get compare-and-swap
protection for read-modify-write cycles.
"""

from titlereg.store.base import KeyValueStore, VersionedStore
from titlereg.store.http import HttpStore
from titlereg.store.memory import MemoryStore

__all__ = [
    "HttpStore",
    "KeyValueStore",
    "MemoryStore",
    "VersionedStore",
]
