"""Data models for registry values."""

from titlereg.models._base import TitleBaseModel
from titlereg.models.title import UPDATABLE_FIELDS, TitleRecord

__all__ = [
    "UPDATABLE_FIELDS",
    "TitleBaseModel",
    "TitleRecord",
]
