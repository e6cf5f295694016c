"""Base model for persisted registry values.

Every persisted model inherits from :class:`TitleBaseModel` which
provides:

* ``frozen=True`` so decoded records are plain immutable attribute bags;
  mutations go through ``model_copy(update=...)``.
* ``strict=True`` so a stored ``123`` or ``null`` is rejected instead of
  being coerced into a string field.
* ``extra="ignore"`` so unknown keys written by other ledger clients do
  not break decoding.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class TitleBaseModel(BaseModel):
    """Base for models persisted in the ledger."""

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="ignore",
    )
