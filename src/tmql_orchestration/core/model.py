"""
Model definition.

A model is a named transformation unit: it is built from exactly one primary
source, runs a raw aggregation stage sequence (which may reference further
sources through ``$lookup``/``$unionWith``/...), and writes its result to an
output collection using a materialization strategy.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.core.source import SourceType, is_source
from tmql_orchestration.core.types import SourceLike, Stage


@dataclass(frozen=True, eq=False)
class Model:
    """
    A dependency-aware transformation unit.

    Models compare and hash by identity: two separately declared models with
    the same name are distinct objects, which is what duplicate detection
    relies on.

    Attributes:
        name: Unique model name within a project
        source: Primary input, a Collection, another Model, or a source name
        stages: Raw aggregation stages run against the primary input
        output: Output collection name (defaults to ``name``); other models
            reference this model by it
        materialize: Write strategy for the output
        description: Optional human-readable description
        tags: Optional tags
    """

    name: str
    source: SourceLike
    stages: tuple[Stage, ...] = ()
    output: str = ""
    materialize: MaterializationConfig = field(default_factory=MaterializationConfig)
    description: str | None = None
    tags: tuple[str, ...] = ()
    source_type: SourceType = field(default=SourceType.MODEL, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Model name must be a non-empty string")
        if not self.output:
            object.__setattr__(self, "output", self.name)
        if not isinstance(self.output, str):
            raise ValueError(f"Model '{self.name}': output must be a string")
        if not (isinstance(self.source, str) and self.source) and not is_source(self.source):
            raise ValueError(
                f"Model '{self.name}': source must be a Collection, a Model or a non-empty name, "
                f"got {type(self.source).__name__}"
            )
        if isinstance(self.stages, Mapping):
            raise ValueError(f"Model '{self.name}': stages must be a sequence of stage mappings")
        object.__setattr__(self, "stages", tuple(self.stages))
        for stage in self.stages:
            if not isinstance(stage, Mapping):
                raise ValueError(f"Model '{self.name}': every stage must be a mapping, got {type(stage).__name__}")
        if isinstance(self.materialize, (Mapping, str)):
            object.__setattr__(self, "materialize", MaterializationConfig.from_dict(self.materialize))
        if isinstance(self.tags, str):
            object.__setattr__(self, "tags", (self.tags,))
        else:
            object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def source_name(self) -> str:
        """Name other models use to read this model's output."""
        return self.output

    @property
    def primary_source_name(self) -> str:
        if isinstance(self.source, str):
            return self.source
        return self.source.source_name

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, source={self.primary_source_name!r}, output={self.output!r})"


def model(
    name: str,
    source: SourceLike,
    stages: Iterable[Stage] = (),
    *,
    output: str | None = None,
    materialize: MaterializationConfig | Mapping[str, Any] | str | None = None,
    description: str | None = None,
    tags: Iterable[str] = (),
) -> Model:
    """
    Declare a model.

    Convenience wrapper around ``Model`` accepting config-file friendly
    materialization values (``"replace"`` or ``{"mode": "upsert", "key": ["_id"]}``).

    Examples:
        users = Collection("users")
        active = model("active_users", users, [{"$match": {"active": True}}])
    """
    return Model(
        name=name,
        source=source,
        stages=tuple(stages),
        output=output or "",
        materialize=materialize if materialize is not None else MaterializationConfig(),
        description=description,
        tags=tuple(tags),
    )
