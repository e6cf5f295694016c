"""Registry manager: title operations against the key-value ledger.

Each operation validates its string arguments, then issues a short fixed
sequence of store calls.  Two pieces of state are maintained:

* one record per title id, stored at the id itself;
* the Id Index, a list of ids stored under ``config.index_key``.

The store offers no multi-key transactions, so operations are ordered
such that a failure half way leaves at worst an orphan record (record
without index entry), never an index entry without a record.

Read-modify-write cycles are protected two ways: an in-process
``asyncio.Lock`` when ``serialize_mutations`` is on, and compare-and-swap
when the store implements :class:`~titlereg.store.VersionedStore`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Sequence

from titlereg._constants import is_reserved_key, parse_integer
from titlereg._redact import redact_for_log, redact_stored_value
from titlereg.codec import decode_index, decode_record, encode_index, encode_record, normalize_for_creation
from titlereg.config import RegistryConfig
from titlereg.exceptions import (
    AlreadyExistsError,
    ArgumentError,
    ConflictError,
    DecodeError,
    DeleteError,
    IndexResetError,
    NotFoundError,
    OrphanedRecordError,
    PartialDeleteError,
    StoreError,
    TitleRegistryError,
    WriteError,
)
from titlereg.models.title import UPDATABLE_FIELDS, TitleRecord
from titlereg.store.base import KeyValueStore, VersionedStore

_logger = logging.getLogger(__name__)

_ORDINALS = ("1st", "2nd", "3rd", "4th", "5th", "6th")


def _ordinal(position: int) -> str:
    if position < len(_ORDINALS):
        return _ORDINALS[position]
    return f"{position + 1}th"


def _require_exact(args: Sequence[str], count: int) -> None:
    if len(args) != count:
        raise ArgumentError(f"Incorrect number of arguments. Expecting {count}, got {len(args)}")


def _require_at_least(args: Sequence[str], count: int) -> None:
    if len(args) < count:
        raise ArgumentError(f"Incorrect number of arguments. Expecting {count}, got {len(args)}")


def _require_encodable(args: Sequence[str]) -> None:
    """Reject arguments that cannot be stored as UTF-8 (e.g. surrogate-escaped argv bytes)."""
    for position, arg in enumerate(args):
        try:
            arg.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ArgumentError(f"{_ordinal(position)} argument is not valid UTF-8 text") from exc


def _require_non_empty(args: Sequence[str], position: int) -> None:
    if not args[position]:
        raise ArgumentError(f"{_ordinal(position)} argument must be a non-empty string")


def _require_title_id(title_id: str) -> None:
    if is_reserved_key(title_id):
        raise ArgumentError(f"Title id {title_id!r} uses the reserved '_' prefix")


def _remove_first(ids: list[str], title_id: str) -> list[str]:
    """Drop the first entry equal to *title_id*, keeping the rest in order."""
    try:
        position = ids.index(title_id)
    except ValueError:
        return ids
    return ids[:position] + ids[position + 1 :]


class TitleRegistry:
    """Vehicle-title registry over a :class:`~titlereg.store.KeyValueStore`.

    Usage::

        registry = TitleRegistry(MemoryStore())
        await registry.initialize(["100"])
        await registry.create_title(["V1", "1HGCM82633A004352", "Honda", "Civic", "ABC123", "Alice"])
        await registry.transfer_owner(["V1", "Bob"])
    """

    def __init__(self, store: KeyValueStore, config: RegistryConfig | None = None) -> None:
        self._store = store
        self._config = config if config is not None else RegistryConfig()
        self._lock = asyncio.Lock()

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def _versioned(self) -> VersionedStore | None:
        store = self._store
        return store if isinstance(store, VersionedStore) else None

    @contextlib.asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        """Single-writer section for mutating operations."""
        if not self._config.serialize_mutations:
            yield
            return
        async with self._lock:
            yield

    # ------------------------------------------------------------------
    # Store call wrappers (map backend failures to operation errors)
    # ------------------------------------------------------------------

    async def _get(self, key: str) -> bytes | None:
        try:
            return await self._store.get(key)
        except StoreError as exc:
            raise NotFoundError(f"Failed to get state for {key}", key=key) from exc

    async def _get_versioned(self, store: VersionedStore, key: str) -> tuple[bytes | None, str | None]:
        try:
            return await store.get_versioned(key)
        except StoreError as exc:
            raise NotFoundError(f"Failed to get state for {key}", key=key) from exc

    async def _put(self, key: str, value: bytes) -> None:
        _logger.debug("put %s = %s", key, redact_stored_value(value))
        try:
            await self._store.put(key, value)
        except StoreError as exc:
            raise WriteError(f"Failed to write state for {key}", key=key) from exc

    async def _put_if_version(self, store: VersionedStore, key: str, value: bytes, version: str | None) -> bool:
        _logger.debug("put %s (if version %s) = %s", key, version, redact_stored_value(value))
        try:
            return await store.put_if_version(key, value, version)
        except StoreError as exc:
            raise WriteError(f"Failed to write state for {key}", key=key) from exc

    async def _delete(self, key: str) -> None:
        _logger.debug("delete %s", key)
        try:
            await self._store.delete(key)
        except StoreError as exc:
            raise DeleteError(f"Failed to delete state for {key}", key=key) from exc

    # ------------------------------------------------------------------
    # Read-modify-write cycles
    # ------------------------------------------------------------------

    async def _mutate_index(self, mutate: Callable[[list[str]], list[str]]) -> list[str]:
        """Apply *mutate* to the stored index and write the result back."""
        key = self._config.index_key
        store = self._versioned
        if store is None:
            ids = mutate(decode_index(await self._get(key), key=key))
            await self._put(key, encode_index(ids))
            return ids

        attempts = self._config.cas_max_attempts
        for attempt in range(1, attempts + 1):
            raw, version = await self._get_versioned(store, key)
            ids = mutate(decode_index(raw, key=key))
            if await self._put_if_version(store, key, encode_index(ids), version):
                return ids
            _logger.warning("Concurrent index update detected (attempt %d/%d), retrying", attempt, attempts)
        raise ConflictError(f"Gave up updating {key} after {attempts} conflicting attempts", key=key)

    def _decode_existing(self, title_id: str, raw: bytes | None) -> TitleRecord:
        if raw is None:
            if self._config.require_existing:
                raise NotFoundError(f"No title stored for {title_id}", key=title_id)
            _logger.warning("Title %s is absent; materializing an empty record", title_id)
            return TitleRecord()
        try:
            return decode_record(raw, key=title_id)
        except DecodeError:
            if self._config.require_existing:
                raise
            _logger.warning("Title %s is malformed; materializing an empty record", title_id)
            return TitleRecord()

    async def _mutate_record(self, title_id: str, mutate: Callable[[TitleRecord], TitleRecord]) -> TitleRecord:
        """Apply *mutate* to the stored record at *title_id* and write it back."""
        store = self._versioned
        if store is None:
            record = mutate(self._decode_existing(title_id, await self._get(title_id)))
            await self._put(title_id, encode_record(record))
            return record

        attempts = self._config.cas_max_attempts
        for attempt in range(1, attempts + 1):
            raw, version = await self._get_versioned(store, title_id)
            record = mutate(self._decode_existing(title_id, raw))
            if await self._put_if_version(store, title_id, encode_record(record), version):
                return record
            _logger.warning("Concurrent update of %s detected (attempt %d/%d), retrying", title_id, attempt, attempts)
        raise ConflictError(f"Gave up updating {title_id} after {attempts} conflicting attempts", key=title_id)

    async def _store_new_record(self, title_id: str, payload: bytes) -> None:
        if not self._config.create_only:
            await self._put(title_id, payload)
            return

        store = self._versioned
        if store is not None:
            if not await self._put_if_version(store, title_id, payload, None):
                raise AlreadyExistsError(f"Title {title_id} already exists", key=title_id)
            return

        if await self._get(title_id) is not None:
            raise AlreadyExistsError(f"Title {title_id} already exists", key=title_id)
        await self._put(title_id, payload)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def initialize(self, args: Sequence[str]) -> None:
        """Reset the Id Index to empty and write the legacy smoke-test value.

        Expects one argument, a decimal integer.  Any previous index
        content is discarded; title records themselves are left alone.
        """
        _require_exact(args, 1)
        _require_encodable(args)
        try:
            value = parse_integer(args[0])
        except ValueError as exc:
            raise ArgumentError(f"Expecting integer value, got {args[0]!r}") from exc

        legacy_key = self._config.legacy_key
        index_key = self._config.index_key
        async with self._mutation():
            if not self._config.legacy_counter_enabled:
                await self._put(index_key, encode_index([]))
            else:
                await self._put(legacy_key, str(value).encode("utf-8"))
                try:
                    await self._put(index_key, encode_index([]))
                except WriteError as exc:
                    _logger.error("%s was written but %s was not reset", legacy_key, index_key)
                    raise IndexResetError(
                        f"{legacy_key} written but index reset failed",
                        key=index_key,
                        committed=(legacy_key,),
                    ) from exc
        _logger.info("Registry initialized; index %s reset", self._config.index_key)

    async def create_title(self, args: Sequence[str]) -> TitleRecord:
        """Create (or, unless ``create_only``, overwrite) a title and index it.

        Arguments: id, vin, make, model, rego, owner.  Everything but the
        id is lower-cased before storing.
        """
        _require_exact(args, 6)
        _require_encodable(args)
        _require_non_empty(args, 0)
        _require_non_empty(args, 5)
        title_id = args[0]
        _require_title_id(title_id)

        record = normalize_for_creation(*args)
        payload = encode_record(record)
        _logger.debug("create_title %s: %s", title_id, redact_for_log(record.model_dump()))

        def _append(ids: list[str]) -> list[str]:
            if title_id in ids:
                _logger.warning("Title %s is already indexed; index will hold a duplicate entry", title_id)
            return [*ids, title_id]

        async with self._mutation():
            await self._store_new_record(title_id, payload)
            try:
                ids = await self._mutate_index(_append)
            except TitleRegistryError as exc:
                _logger.error(
                    "Title %s was written but %s was not updated; record is orphaned until reconciled",
                    title_id,
                    self._config.index_key,
                )
                raise OrphanedRecordError(
                    f"Title {title_id} written but index update failed: {exc}",
                    key=self._config.index_key,
                    committed=(title_id,),
                ) from exc
        _logger.debug("Index now holds %d entries", len(ids))
        return record

    async def update_title(self, args: Sequence[str]) -> TitleRecord:
        """Overwrite vin, make, model and rego verbatim.

        Arguments: id, vin, make, model, rego (extra arguments are
        ignored).  The index is not touched.
        """
        _require_at_least(args, 5)
        _require_encodable(args[:5])
        title_id = args[0]
        _require_title_id(title_id)
        changes = dict(zip(UPDATABLE_FIELDS, args[1:5], strict=True))

        async with self._mutation():
            record = await self._mutate_record(title_id, lambda current: current.model_copy(update=changes))
        _logger.debug("update_title %s: %s", title_id, redact_for_log(record.model_dump()))
        return record

    async def transfer_owner(self, args: Sequence[str]) -> TitleRecord:
        """Overwrite the owner verbatim.

        Arguments: id, new owner (extra arguments are ignored).
        """
        _require_at_least(args, 2)
        _require_encodable(args[:2])
        title_id, new_owner = args[0], args[1]
        _require_title_id(title_id)

        def _reassign(current: TitleRecord) -> TitleRecord:
            return current.model_copy(update={"owner": new_owner})

        async with self._mutation():
            record = await self._mutate_record(title_id, _reassign)
        _logger.debug("transfer_owner %s complete", title_id)
        return record

    async def delete_title(self, args: Sequence[str]) -> None:
        """Remove a title's first index entry, then its record.

        Deleting an unknown id is not an error and leaves the index as it
        was.
        """
        _require_exact(args, 1)
        _require_encodable(args)
        title_id = args[0]
        _require_title_id(title_id)

        index_key = self._config.index_key
        async with self._mutation():
            try:
                await self._mutate_index(lambda ids: _remove_first(ids, title_id))
            except NotFoundError as exc:
                raise DeleteError(f"Failed to read {index_key}; {title_id} not deleted", key=index_key) from exc
            try:
                await self._delete(title_id)
            except DeleteError as exc:
                _logger.error(
                    "Title %s was removed from %s but its record could not be deleted; record is orphaned",
                    title_id,
                    self._config.index_key,
                )
                raise PartialDeleteError(
                    f"Title {title_id} unindexed but record delete failed",
                    key=title_id,
                    committed=(self._config.index_key,),
                ) from exc
        _logger.debug("delete_title %s complete", title_id)

    async def raw_write(self, args: Sequence[str]) -> None:
        """Write a value verbatim, bypassing record structure and validation."""
        _require_exact(args, 2)
        _require_encodable(args)
        key, value = args
        if is_reserved_key(key) or key == self._config.legacy_key:
            _logger.warning("Raw write to registry key %s", key)
        async with self._mutation():
            await self._put(key, value.encode("utf-8"))

    async def raw_read(self, key: str) -> bytes:
        """Return the bytes stored at *key* unchanged."""
        _require_encodable([key])
        value = await self._get(key)
        if value is None:
            raise NotFoundError(f"Failed to get state for {key}", key=key)
        return value

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_title(self, title_id: str) -> TitleRecord:
        """Read and decode the record stored at *title_id*."""
        return decode_record(await self.raw_read(title_id), key=title_id)

    async def list_title_ids(self) -> list[str]:
        """Current Id Index, in insertion order."""
        key = self._config.index_key
        return decode_index(await self._get(key), key=key)

    async def find_dangling_ids(self) -> list[str]:
        """Index entries whose record is missing.

        Should always be empty; anything returned needs manual
        reconciliation.
        """
        dangling: list[str] = []
        for title_id in await self.list_title_ids():
            if await self._get(title_id) is None:
                dangling.append(title_id)
        if dangling:
            _logger.warning("Index references %d missing records", len(dangling))
        return dangling
