"""titlereg - Vehicle-title registry over a key-value ledger."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("titlereg")
except PackageNotFoundError:
    __version__ = "0+local"
from titlereg.codec import decode_index, decode_record, encode_index, encode_record, normalize_for_creation
from titlereg.config import RegistryConfig
from titlereg.dispatch import Dispatcher, Operation, resolve_operation
from titlereg.exceptions import (
    AlreadyExistsError,
    ArgumentError,
    ConflictError,
    DecodeError,
    DeleteError,
    IndexResetError,
    MutationError,
    NotFoundError,
    OrphanedRecordError,
    PartialDeleteError,
    PartialWriteError,
    StoreError,
    TitleRegistryConfigError,
    TitleRegistryError,
    UnknownOperationError,
    WriteError,
)
from titlereg.models import TitleRecord
from titlereg.registry import TitleRegistry
from titlereg.store import HttpStore, KeyValueStore, MemoryStore, VersionedStore

__all__ = [
    "__version__",
    "AlreadyExistsError",
    "ArgumentError",
    "ConflictError",
    "DecodeError",
    "DeleteError",
    "Dispatcher",
    "HttpStore",
    "IndexResetError",
    "KeyValueStore",
    "MemoryStore",
    "MutationError",
    "NotFoundError",
    "Operation",
    "OrphanedRecordError",
    "PartialDeleteError",
    "PartialWriteError",
    "RegistryConfig",
    "StoreError",
    "TitleRecord",
    "TitleRegistry",
    "TitleRegistryConfigError",
    "TitleRegistryError",
    "UnknownOperationError",
    "VersionedStore",
    "WriteError",
    "decode_index",
    "decode_record",
    "encode_index",
    "encode_record",
    "normalize_for_creation",
    "resolve_operation",
]
