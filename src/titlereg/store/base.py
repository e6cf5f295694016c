"""Store collaborator contract.

The registry talks to the ledger only through these structural
interfaces, which keeps test doubles trivial and lets any backend that
offers get/put/delete by key plug in.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Single-key get/put/delete; no transactions, no scans.

    Backends raise :class:`~titlereg.exceptions.StoreError` for
    failures.  An absent key is not a failure: ``get`` returns ``None``
    and ``delete`` succeeds.
    """

    async def get(self, key: str) -> bytes | None:
        ...

    async def put(self, key: str, value: bytes) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


@runtime_checkable
class VersionedStore(KeyValueStore, Protocol):
    """Store that also supports conditional (compare-and-swap) writes.

    Versions are opaque strings.  ``None`` stands for "key absent" on
    both sides: ``get_versioned`` returns ``(None, None)`` for a missing
    key, and ``put_if_version(key, value, None)`` only succeeds when the
    key does not exist yet.
    """

    async def get_versioned(self, key: str) -> tuple[bytes | None, str | None]:
        ...

    async def put_if_version(self, key: str, value: bytes, version: str | None) -> bool:
        """Write *value* only if the current version matches *version*.

        Returns ``False`` on a version mismatch instead of raising.
        """
        ...
