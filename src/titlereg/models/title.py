"""Title record model."""

from __future__ import annotations

from pydantic import Field

from titlereg.models._base import TitleBaseModel

#: Fields overwritten by ``update_title``, in argument order after the id.
UPDATABLE_FIELDS: tuple[str, ...] = ("vin", "make", "model", "rego")


class TitleRecord(TitleBaseModel):
    """A vehicle title: identity, vehicle attributes and current owner.

    Field declaration order is the serialization order, which keeps the
    encoded bytes deterministic.  Any field missing from stored data
    falls back to ``""``.
    """

    id: str = Field(default="", description="Title id; also the record's store key.")
    vin: str = Field(default="", description="Vehicle identification number.")
    make: str = ""
    model: str = ""
    rego: str = Field(default="", description="Registration code.")
    owner: str = Field(default="", description="Current owner.")
