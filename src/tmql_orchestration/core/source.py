"""
Source variants.

A source is anything a model can read from. There are two variants, told apart
by an explicit ``source_type`` tag rather than by class hierarchy:

- ``Collection``: a base collection, a leaf with no dependencies
- ``Model``: another model, whose output collection is the source name
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class SourceType(StrEnum):
    """Discriminator carried by every source object."""

    COLLECTION = "collection"
    MODEL = "model"


@dataclass(frozen=True)
class Collection:
    """A base collection that models can read from."""

    name: str
    source_type: SourceType = field(default=SourceType.COLLECTION, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Collection name must be a non-empty string")

    @property
    def source_name(self) -> str:
        return self.name


def is_source(value: Any) -> bool:
    """Return True if *value* is a Collection or Model object."""
    return getattr(value, "source_type", None) in (SourceType.COLLECTION, SourceType.MODEL)


def is_model(value: Any) -> bool:
    return getattr(value, "source_type", None) == SourceType.MODEL


def is_collection(value: Any) -> bool:
    return getattr(value, "source_type", None) == SourceType.COLLECTION


def source_name_of(value: Any) -> str | None:
    """
    Resolve a source reference to the name other stages use for it.

    Args:
        value: A source object or a plain name string

    Returns:
        The source name, or None if *value* is neither a name nor a source
    """
    if isinstance(value, str):
        return value or None
    if is_source(value):
        return value.source_name
    return None
