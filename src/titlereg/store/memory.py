"""In-memory versioned store."""

from __future__ import annotations

import logging

_logger = logging.getLogger(__name__)


class MemoryStore:
    """Dict-backed :class:`~titlereg.store.base.VersionedStore`.

    Each key carries a monotonically increasing integer version, bumped
    on every write.  Deleting a key forgets its version, so a later
    create-if-absent write succeeds again.
    """

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, tuple[bytes, int]] = {}
        self._next_version = 1
        for key, value in (initial or {}).items():
            self._set(key, value)

    def _set(self, key: str, value: bytes) -> None:
        self._data[key] = (bytes(value), self._next_version)
        self._next_version += 1

    async def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        return entry[0] if entry is not None else None

    async def put(self, key: str, value: bytes) -> None:
        self._set(key, value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_versioned(self, key: str) -> tuple[bytes | None, str | None]:
        entry = self._data.get(key)
        if entry is None:
            return None, None
        return entry[0], str(entry[1])

    async def put_if_version(self, key: str, value: bytes, version: str | None) -> bool:
        entry = self._data.get(key)
        current = str(entry[1]) if entry is not None else None
        if current != version:
            _logger.debug("Version mismatch on %s: expected %s, found %s", key, version, current)
            return False
        self._set(key, value)
        return True

    def snapshot(self) -> dict[str, bytes]:
        """Copy of the current key/value contents, without versions."""
        return {key: value for key, (value, _version) in self._data.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
