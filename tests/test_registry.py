"""Tests for TitleRegistry operations against the in-memory store."""

from __future__ import annotations

import pytest

from titlereg.codec import decode_index, decode_record, encode_index, encode_record
from titlereg.config import RegistryConfig
from titlereg.exceptions import (
    AlreadyExistsError,
    ArgumentError,
    DecodeError,
    DeleteError,
    IndexResetError,
    NotFoundError,
    OrphanedRecordError,
    PartialDeleteError,
    PartialWriteError,
    StoreError,
    WriteError,
)
from titlereg.models.title import TitleRecord
from titlereg.registry import TitleRegistry
from titlereg.store.memory import MemoryStore

INDEX_KEY = "_titleindex"
CREATE_V1 = ["V1", "1HGCM82633A004352", "Honda", "Civic", "ABC123", "Alice"]


class _FlakyStore:
    """Plain (unversioned) store that fails selected calls."""

    def __init__(
        self,
        *,
        fail_get: set[str] | None = None,
        fail_put: set[str] | None = None,
        fail_delete: set[str] | None = None,
    ) -> None:
        self.data: dict[str, bytes] = {}
        self.fail_get = fail_get or set()
        self.fail_put = fail_put or set()
        self.fail_delete = fail_delete or set()

    async def get(self, key: str) -> bytes | None:
        if key in self.fail_get:
            raise StoreError(f"get {key} unavailable", key=key)
        return self.data.get(key)

    async def put(self, key: str, value: bytes) -> None:
        if key in self.fail_put:
            raise StoreError(f"put {key} unavailable", key=key)
        self.data[key] = value

    async def delete(self, key: str) -> None:
        if key in self.fail_delete:
            raise StoreError(f"delete {key} unavailable", key=key)
        self.data.pop(key, None)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(store: MemoryStore) -> TitleRegistry:
    return TitleRegistry(store)


async def _index(store: MemoryStore) -> list[str]:
    return decode_index(await store.get(INDEX_KEY))


# ------------------------------------------------------------------
# initialize
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_initialize_writes_legacy_value_and_empty_index(registry: TitleRegistry, store: MemoryStore) -> None:
    await store.put(INDEX_KEY, encode_index(["stale"]))

    await registry.initialize(["100"])

    assert await store.get("abc") == b"100"
    assert await store.get(INDEX_KEY) == b"[]"


@pytest.mark.asyncio
async def test_initialize_normalizes_integer_text(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["+007"])
    assert await store.get("abc") == b"7"


@pytest.mark.asyncio
@pytest.mark.parametrize("args", [[], ["1", "2"], ["ten"], [" 10"], ["1_000"], ["1.5"], [""]])
async def test_initialize_rejects_bad_arguments(registry: TitleRegistry, store: MemoryStore, args: list[str]) -> None:
    with pytest.raises(ArgumentError):
        await registry.initialize(args)
    assert len(store) == 0


@pytest.mark.asyncio
async def test_initialize_can_skip_legacy_value(store: MemoryStore) -> None:
    registry = TitleRegistry(store, RegistryConfig(legacy_counter_enabled=False))

    await registry.initialize(["100"])

    assert "abc" not in store
    assert await store.get(INDEX_KEY) == b"[]"


@pytest.mark.asyncio
async def test_initialize_index_failure_reports_legacy_write(caplog: pytest.LogCaptureFixture) -> None:
    store = _FlakyStore(fail_put={INDEX_KEY})
    store.data[INDEX_KEY] = encode_index(["V1"])
    registry = TitleRegistry(store)

    with pytest.raises(IndexResetError) as exc_info:
        await registry.initialize(["100"])

    assert isinstance(exc_info.value, PartialWriteError)
    assert isinstance(exc_info.value, WriteError)
    assert exc_info.value.key == INDEX_KEY
    assert exc_info.value.committed == ("abc",)
    assert store.data["abc"] == b"100"
    assert decode_index(store.data[INDEX_KEY]) == ["V1"]
    assert "was not reset" in caplog.text


@pytest.mark.asyncio
async def test_initialize_index_failure_without_legacy_value_is_total() -> None:
    store = _FlakyStore(fail_put={INDEX_KEY})
    registry = TitleRegistry(store, RegistryConfig(legacy_counter_enabled=False))

    with pytest.raises(WriteError) as exc_info:
        await registry.initialize(["100"])

    assert not isinstance(exc_info.value, PartialWriteError)
    assert store.data == {}


# ------------------------------------------------------------------
# create_title
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_title_normalizes_and_indexes(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["100"])

    record = await registry.create_title(CREATE_V1)

    stored = decode_record(await registry.raw_read("V1"))
    assert stored == record
    assert stored.id == "V1"
    assert stored.vin == "1hgcm82633a004352"
    assert stored.make == "honda"
    assert stored.model == "civic"
    assert stored.rego == "abc123"
    assert stored.owner == "alice"
    assert await _index(store) == ["V1"]


@pytest.mark.asyncio
async def test_create_title_without_initialize_starts_index(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.create_title(CREATE_V1)
    assert await _index(store) == ["V1"]


@pytest.mark.asyncio
async def test_create_title_appends_in_order(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["0"])
    for title_id in ("B", "A", "C"):
        await registry.create_title([title_id, "vin", "make", "model", "rego", "owner"])

    assert await registry.list_title_ids() == ["B", "A", "C"]


@pytest.mark.asyncio
async def test_create_title_upsert_overwrites_and_duplicates_index(
    registry: TitleRegistry,
    store: MemoryStore,
    caplog: pytest.LogCaptureFixture,
) -> None:
    await registry.initialize(["0"])
    await registry.create_title(CREATE_V1)

    await registry.create_title(["V1", "VIN2", "Ford", "Focus", "R2", "Carol"])

    assert (await registry.get_title("V1")).owner == "carol"
    assert await _index(store) == ["V1", "V1"]
    assert "duplicate" in caplog.text


@pytest.mark.asyncio
async def test_create_only_rejects_existing_title(store: MemoryStore) -> None:
    registry = TitleRegistry(store, RegistryConfig(create_only=True))
    await registry.initialize(["0"])
    await registry.create_title(CREATE_V1)

    with pytest.raises(AlreadyExistsError) as exc_info:
        await registry.create_title(["V1", "VIN2", "Ford", "Focus", "R2", "Carol"])

    assert exc_info.value.key == "V1"
    assert (await registry.get_title("V1")).owner == "alice"
    assert await _index(store) == ["V1"]


@pytest.mark.asyncio
async def test_create_only_on_plain_store() -> None:
    store = _FlakyStore()
    registry = TitleRegistry(store, RegistryConfig(create_only=True))
    await registry.create_title(CREATE_V1)

    with pytest.raises(AlreadyExistsError):
        await registry.create_title(CREATE_V1)
    assert decode_index(store.data[INDEX_KEY]) == ["V1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("args", "message"),
    [
        (CREATE_V1[:5], "Expecting 6"),
        ([*CREATE_V1, "extra"], "Expecting 6"),
        (["", *CREATE_V1[1:]], "1st argument"),
        ([*CREATE_V1[:5], ""], "6th argument"),
        (["_titleindex", *CREATE_V1[1:]], "reserved"),
    ],
)
async def test_create_title_rejects_bad_arguments(
    registry: TitleRegistry,
    store: MemoryStore,
    args: list[str],
    message: str,
) -> None:
    with pytest.raises(ArgumentError, match=message):
        await registry.create_title(args)
    assert len(store) == 0


@pytest.mark.asyncio
async def test_create_title_index_failure_reports_orphan(caplog: pytest.LogCaptureFixture) -> None:
    store = _FlakyStore(fail_put={INDEX_KEY})
    registry = TitleRegistry(store)

    with pytest.raises(OrphanedRecordError) as exc_info:
        await registry.create_title(CREATE_V1)

    exc = exc_info.value
    assert isinstance(exc, WriteError)
    assert isinstance(exc, PartialWriteError)
    assert exc.committed == ("V1",)
    assert exc.key == INDEX_KEY
    assert "V1" in store.data
    assert "orphaned" in caplog.text


@pytest.mark.asyncio
async def test_create_title_record_failure_is_total() -> None:
    store = _FlakyStore(fail_put={"V1"})
    registry = TitleRegistry(store)

    with pytest.raises(WriteError) as exc_info:
        await registry.create_title(CREATE_V1)

    assert not isinstance(exc_info.value, PartialWriteError)
    assert store.data == {}


# ------------------------------------------------------------------
# update_title / transfer_owner
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_title_touches_only_vehicle_fields(registry: TitleRegistry) -> None:
    await registry.initialize(["0"])
    await registry.create_title(CREATE_V1)
    before = await registry.get_title("V1")

    await registry.update_title(["V1", "2HGCM82633A004353", "Toyota", "Corolla", "XYZ999"])

    after = await registry.get_title("V1")
    assert after.vin == "2HGCM82633A004353"
    assert after.make == "Toyota"
    assert after.model == "Corolla"
    assert after.rego == "XYZ999"
    assert after.id == before.id
    assert after.owner == before.owner
    assert await registry.list_title_ids() == ["V1"]


@pytest.mark.asyncio
async def test_update_title_ignores_extra_arguments(registry: TitleRegistry) -> None:
    await registry.create_title(CREATE_V1)

    await registry.update_title(["V1", "vin", "make", "model", "rego", "ignored"])

    assert (await registry.get_title("V1")).owner == "alice"


@pytest.mark.asyncio
async def test_transfer_owner_is_verbatim(registry: TitleRegistry) -> None:
    await registry.create_title(CREATE_V1)
    before = await registry.raw_read("V1")

    await registry.transfer_owner(["V1", "Bob"])

    after = await registry.get_title("V1")
    assert after.owner == "Bob"
    assert after.model_copy(update={"owner": "alice"}) == decode_record(before)


@pytest.mark.asyncio
async def test_update_and_transfer_argument_counts(registry: TitleRegistry) -> None:
    with pytest.raises(ArgumentError):
        await registry.update_title(["V1", "vin", "make", "model"])
    with pytest.raises(ArgumentError):
        await registry.transfer_owner(["V1"])


@pytest.mark.asyncio
async def test_update_absent_title_raises_not_found(registry: TitleRegistry, store: MemoryStore) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        await registry.transfer_owner(["ghost", "Bob"])

    assert exc_info.value.key == "ghost"
    assert "ghost" not in store


@pytest.mark.asyncio
async def test_update_malformed_title_raises_decode_error(registry: TitleRegistry, store: MemoryStore) -> None:
    await store.put("V1", b"garbage")

    with pytest.raises(DecodeError):
        await registry.update_title(["V1", "vin", "make", "model", "rego"])
    assert await store.get("V1") == b"garbage"


@pytest.mark.asyncio
async def test_permissive_mode_materializes_zero_record(store: MemoryStore) -> None:
    registry = TitleRegistry(store, RegistryConfig(require_existing=False))
    await store.put("V2", b"garbage")

    await registry.transfer_owner(["ghost", "Bob"])
    await registry.update_title(["V2", "vin", "make", "model", "rego"])

    assert decode_record(await store.get("ghost")) == TitleRecord(owner="Bob")
    assert decode_record(await store.get("V2")) == TitleRecord(vin="vin", make="make", model="model", rego="rego")


@pytest.mark.asyncio
async def test_update_rejects_reserved_id(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["0"])

    with pytest.raises(ArgumentError):
        await registry.transfer_owner([INDEX_KEY, "Bob"])
    assert await store.get(INDEX_KEY) == b"[]"


@pytest.mark.asyncio
async def test_update_read_failure_surfaces_not_found() -> None:
    store = _FlakyStore(fail_get={"V1"})
    registry = TitleRegistry(store)

    with pytest.raises(NotFoundError) as exc_info:
        await registry.transfer_owner(["V1", "Bob"])

    assert isinstance(exc_info.value.__cause__, StoreError)


# ------------------------------------------------------------------
# delete_title
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_title_removes_record_and_index_entry(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["0"])
    await registry.create_title(CREATE_V1)

    await registry.delete_title(["V1"])

    with pytest.raises(NotFoundError):
        await registry.raw_read("V1")
    assert await _index(store) == []


@pytest.mark.asyncio
async def test_delete_title_removes_first_match_only(registry: TitleRegistry, store: MemoryStore) -> None:
    await store.put(INDEX_KEY, encode_index(["A", "V1", "B", "V1", "C"]))
    await store.put("V1", encode_record(TitleRecord(id="V1", owner="x")))

    await registry.delete_title(["V1"])

    assert await _index(store) == ["A", "B", "V1", "C"]


@pytest.mark.asyncio
async def test_delete_absent_title_is_noop(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["0"])
    await registry.create_title(CREATE_V1)
    index_before = await store.get(INDEX_KEY)

    await registry.delete_title(["ghost"])

    assert await store.get(INDEX_KEY) == index_before
    assert "V1" in store


@pytest.mark.asyncio
async def test_delete_title_argument_count(registry: TitleRegistry) -> None:
    with pytest.raises(ArgumentError):
        await registry.delete_title([])
    with pytest.raises(ArgumentError):
        await registry.delete_title(["V1", "V2"])


@pytest.mark.asyncio
async def test_delete_record_failure_keeps_index_consistent(caplog: pytest.LogCaptureFixture) -> None:
    store = _FlakyStore(fail_delete={"V1"})
    registry = TitleRegistry(store)
    await registry.create_title(CREATE_V1)

    with pytest.raises(PartialDeleteError) as exc_info:
        await registry.delete_title(["V1"])

    exc = exc_info.value
    assert isinstance(exc, DeleteError)
    assert exc.key == "V1"
    assert exc.committed == (INDEX_KEY,)
    # Orphan record, but no dangling index entry.
    assert "V1" in store.data
    assert decode_index(store.data[INDEX_KEY]) == []
    assert await registry.find_dangling_ids() == []


@pytest.mark.asyncio
async def test_delete_index_failure_deletes_nothing() -> None:
    store = _FlakyStore(fail_put={INDEX_KEY})
    store.data["V1"] = encode_record(TitleRecord(id="V1", owner="x"))
    store.data[INDEX_KEY] = encode_index(["V1"])
    registry = TitleRegistry(store)

    with pytest.raises(WriteError) as exc_info:
        await registry.delete_title(["V1"])

    assert not isinstance(exc_info.value, PartialWriteError)
    assert "V1" in store.data


@pytest.mark.asyncio
async def test_delete_index_read_failure_is_delete_error() -> None:
    store = _FlakyStore(fail_get={INDEX_KEY})
    store.data["V1"] = encode_record(TitleRecord(id="V1", owner="x"))
    registry = TitleRegistry(store)

    with pytest.raises(DeleteError) as exc_info:
        await registry.delete_title(["V1"])

    assert not isinstance(exc_info.value, PartialWriteError)
    assert exc_info.value.key == INDEX_KEY
    assert isinstance(exc_info.value.__cause__, NotFoundError)
    assert "V1" in store.data


# ------------------------------------------------------------------
# raw operations and reads
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_raw_write_and_read_are_verbatim(registry: TitleRegistry) -> None:
    await registry.raw_write(["anything", "  Some Value  "])
    assert await registry.raw_read("anything") == b"  Some Value  "


@pytest.mark.asyncio
async def test_raw_write_can_clobber_index(registry: TitleRegistry, caplog: pytest.LogCaptureFixture) -> None:
    await registry.raw_write([INDEX_KEY, '["X"]'])

    assert await registry.list_title_ids() == ["X"]
    assert "Raw write to registry key" in caplog.text


@pytest.mark.asyncio
async def test_raw_write_argument_count(registry: TitleRegistry) -> None:
    with pytest.raises(ArgumentError):
        await registry.raw_write(["only-key"])


@pytest.mark.asyncio
async def test_raw_read_missing_key(registry: TitleRegistry) -> None:
    with pytest.raises(NotFoundError, match="missing") as exc_info:
        await registry.raw_read("missing")
    assert exc_info.value.key == "missing"


@pytest.mark.asyncio
async def test_raw_write_store_failure() -> None:
    registry = TitleRegistry(_FlakyStore(fail_put={"k"}))
    with pytest.raises(WriteError) as exc_info:
        await registry.raw_write(["k", "v"])
    assert exc_info.value.key == "k"


@pytest.mark.asyncio
async def test_find_dangling_ids(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.create_title(CREATE_V1)
    await store.put(INDEX_KEY, encode_index(["V1", "lost"]))

    assert await registry.find_dangling_ids() == ["lost"]


@pytest.mark.asyncio
async def test_reads_legacy_null_index(registry: TitleRegistry, store: MemoryStore) -> None:
    await store.put(INDEX_KEY, b"null")

    await registry.create_title(CREATE_V1)

    assert await _index(store) == ["V1"]


# ------------------------------------------------------------------
# End-to-end scenario
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_title_lifecycle(registry: TitleRegistry, store: MemoryStore) -> None:
    await registry.initialize(["100"])
    assert await registry.list_title_ids() == []

    await registry.create_title(CREATE_V1)
    assert await registry.get_title("V1") == TitleRecord(
        id="V1",
        vin="1hgcm82633a004352",
        make="honda",
        model="civic",
        rego="abc123",
        owner="alice",
    )
    assert await registry.list_title_ids() == ["V1"]

    await registry.transfer_owner(["V1", "Bob"])
    assert (await registry.get_title("V1")).owner == "Bob"

    await registry.update_title(["V1", "2HGCM82633A004353", "Toyota", "Corolla", "XYZ999"])
    record = await registry.get_title("V1")
    assert (record.vin, record.make, record.model, record.rego) == ("2HGCM82633A004353", "Toyota", "Corolla", "XYZ999")
    assert record.owner == "Bob"

    await registry.delete_title(["V1"])
    with pytest.raises(NotFoundError):
        await registry.raw_read("V1")
    assert await registry.list_title_ids() == []


# ------------------------------------------------------------------
# text that has no UTF-8 form
# ------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("operation", "args", "position"),
    [
        ("initialize", ["1\udcff"], "1st"),
        ("create_title", ["V1", "vin\udcff", "Honda", "Civic", "ABC123", "Alice"], "2nd"),
        ("create_title", ["V1", "vin", "Honda", "Civic", "ABC123", "Alice\udcff"], "6th"),
        ("update_title", ["V1", "vin", "make", "model\udcff", "rego"], "4th"),
        ("transfer_owner", ["V1", "bob\udcff"], "2nd"),
        ("delete_title", ["V\udcff1"], "1st"),
        ("raw_write", ["k", "bad\udcff"], "2nd"),
    ],
)
async def test_unencodable_arguments_raise_argument_error(
    registry: TitleRegistry,
    store: MemoryStore,
    operation: str,
    args: list[str],
    position: str,
) -> None:
    await registry.create_title(CREATE_V1)
    before = store.snapshot()

    with pytest.raises(ArgumentError, match=f"{position} argument is not valid UTF-8"):
        await getattr(registry, operation)(args)

    assert store.snapshot() == before


@pytest.mark.asyncio
async def test_raw_read_rejects_unencodable_key(registry: TitleRegistry) -> None:
    with pytest.raises(ArgumentError):
        await registry.raw_read("k\udcff")


@pytest.mark.asyncio
async def test_update_ignores_unencodable_extra_arguments(registry: TitleRegistry) -> None:
    await registry.create_title(CREATE_V1)

    record = await registry.update_title(["V1", "vin", "make", "model", "rego", "extra\udcff"])

    assert record.rego == "rego"
