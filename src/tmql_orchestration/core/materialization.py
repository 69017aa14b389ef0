"""
Materialization configuration.

Describes how a model's computed documents are written to its output
collection. The write itself is carried out by the execution engine using the
matching strategy from ``tmql_orchestration.strategies``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

#: Key used for conflict detection when an append carries no key hint
DEFAULT_KEY = ("_id",)


class MaterializationMode(StrEnum):
    """Write strategy applied to a model's output."""

    REPLACE = "replace"  # Full overwrite of the output collection
    UPSERT = "upsert"  # Merge by key, insert-or-update
    APPEND = "append"  # Insert-only, conflicts are fatal


def _normalize_key(key: str | Iterable[str] | None) -> tuple[str, ...]:
    if key is None:
        return ()
    if isinstance(key, str):
        return (key,)
    fields = tuple(key)
    for f in fields:
        if not isinstance(f, str) or not f:
            raise ValueError(f"Key fields must be non-empty strings, got {f!r}")
    return fields


@dataclass(frozen=True)
class MaterializationConfig:
    """
    Tagged write strategy for a model.

    Attributes:
        mode: Materialization mode
        key: Field set used to match documents. Required for upsert; an optional
            conflict-detection hint for append; ignored for replace.
    """

    mode: MaterializationMode = MaterializationMode.REPLACE
    key: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", MaterializationMode(self.mode))
        object.__setattr__(self, "key", _normalize_key(self.key))
        if self.mode == MaterializationMode.UPSERT and not self.key:
            raise ValueError("Upsert materialization requires a non-empty key")
        if self.mode == MaterializationMode.REPLACE and self.key:
            raise ValueError("Replace materialization does not take a key")

    @classmethod
    def replace(cls) -> "MaterializationConfig":
        return cls(MaterializationMode.REPLACE)

    @classmethod
    def upsert(cls, *key: str, **kwargs: Any) -> "MaterializationConfig":
        """Upsert by key: ``upsert("_id")`` or ``upsert(key=["a", "b"])``."""
        return cls(MaterializationMode.UPSERT, kwargs.pop("key", key))

    @classmethod
    def append(cls, *key: str, **kwargs: Any) -> "MaterializationConfig":
        return cls(MaterializationMode.APPEND, kwargs.pop("key", key))

    @property
    def effective_key(self) -> tuple[str, ...]:
        """Key used for matching/conflict detection (append falls back to ``_id``)."""
        if self.mode == MaterializationMode.REPLACE:
            return ()
        return self.key or DEFAULT_KEY

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | str) -> "MaterializationConfig":
        """
        Build a config from a mapping such as ``{"mode": "upsert", "key": ["_id"]}``.

        A bare mode string (``"replace"``) is also accepted.
        """
        if isinstance(data, str):
            return cls(MaterializationMode(data))
        try:
            mode = MaterializationMode(data.get("mode", MaterializationMode.REPLACE))
        except ValueError as e:
            valid = ", ".join(m.value for m in MaterializationMode)
            raise ValueError(f"Unknown materialization mode {data.get('mode')!r} (expected one of: {valid})") from e
        return cls(mode, data.get("key"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"mode": self.mode.value}
        if self.key:
            result["key"] = list(self.key)
        return result

    def __str__(self) -> str:
        if self.key:
            return f"{self.mode.value}({', '.join(self.key)})"
        return self.mode.value


# Module-level shorthands used in model declarations
replace = MaterializationConfig.replace
upsert = MaterializationConfig.upsert
append = MaterializationConfig.append
