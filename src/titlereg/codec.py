"""Record codec: title records and the Id Index to and from stored bytes.

Records are stored as compact JSON objects whose keys follow the field
order of :class:`~titlereg.models.TitleRecord`; the index is a compact
JSON array of ids.  Both encodings are deterministic, so re-encoding a
decoded value reproduces the original bytes.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from titlereg.exceptions import ArgumentError, DecodeError
from titlereg.models.title import TitleRecord

_INDEX_ADAPTER: TypeAdapter[list[str]] = TypeAdapter(list[str])

# What the original ledger wrote for an empty (nil) id list.
_EMPTY_INDEX_PAYLOADS = frozenset({b"", b"null"})


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{loc}: {first.get('msg', '')}"


def encode_record(record: TitleRecord) -> bytes:
    """Serialize *record* to its stored form.

    Raises :class:`ArgumentError` when a field holds text that has no
    UTF-8 form, such as a lone surrogate.
    """
    try:
        return record.model_dump_json().encode("utf-8")
    except (PydanticSerializationError, UnicodeEncodeError) as exc:
        raise ArgumentError(f"Title record {record.id!r} cannot be encoded: {exc}") from exc


def decode_record(data: bytes, *, key: str = "") -> TitleRecord:
    """Parse stored bytes into a :class:`TitleRecord`.

    Absent fields degrade to ``""``.  Raises :class:`DecodeError` when
    *data* is not a JSON object of string fields.
    """
    try:
        return TitleRecord.model_validate_json(data)
    except ValidationError as exc:
        label = f" at {key}" if key else ""
        raise DecodeError(f"Malformed title record{label}: {_first_error(exc)}", key=key) from exc


def encode_index(ids: Iterable[str]) -> bytes:
    """Serialize the Id Index."""
    return _INDEX_ADAPTER.dump_json(list(ids))


def decode_index(data: bytes | None, *, key: str = "") -> list[str]:
    """Parse the stored Id Index.

    ``None``, empty or whitespace-only bytes and JSON ``null`` all mean an
    empty index.  Anything else that is not a JSON array of strings
    raises :class:`DecodeError`.
    """
    if data is None or data.strip() in _EMPTY_INDEX_PAYLOADS:
        return []
    try:
        return _INDEX_ADAPTER.validate_json(data, strict=True)
    except ValidationError as exc:
        label = f" at {key}" if key else ""
        raise DecodeError(f"Malformed title index{label}: {_first_error(exc)}", key=key) from exc


def normalize_for_creation(
    title_id: str,
    vin: str,
    make: str,
    model: str,
    rego: str,
    owner: str,
) -> TitleRecord:
    """Build a new record, lower-casing everything except the id.

    Only creation normalizes; updates and transfers store values verbatim.
    """
    return TitleRecord(
        id=title_id,
        vin=vin.lower(),
        make=make.lower(),
        model=model.lower(),
        rego=rego.lower(),
        owner=owner.lower(),
    )
