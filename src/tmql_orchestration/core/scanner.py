"""
Reference scanning for model stage sequences.

Finds every source a model reads from. The primary reference is the model's
declared source; auxiliary references are discovered by inspecting the stage
sequence for stages that embed another source as an operand:

- ``{"$lookup": {"from": X, "pipeline": [...]}}``
- ``{"$unionWith": X}`` / ``{"$unionWith": {"coll": X, "pipeline": [...]}}``
- ``{"$graphLookup": {"from": X, ...}}``
- ``{"$facet": {"name": [...], ...}}``

``X`` is either a source name or a Collection/Model object. Sub-pipelines are
scanned to any depth. Stage semantics are otherwise not interpreted, and names
are not checked against a registry here.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tmql_orchestration.core.model import Model
from tmql_orchestration.core.source import is_source, source_name_of
from tmql_orchestration.core.types import Source, Stage

#: Stage operators that write their input somewhere
WRITE_OPERATORS = ("$out", "$merge")


@dataclass(frozen=True)
class SourceRef:
    """A reference to a source by name, with the object when one was embedded."""

    name: str
    source: Source | None = None


@dataclass(frozen=True)
class References:
    """All sources a model reads from."""

    primary: SourceRef
    auxiliary: tuple[SourceRef, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        """Primary name first, then auxiliary names in discovery order."""
        return (self.primary.name,) + tuple(ref.name for ref in self.auxiliary)

    def embedded_sources(self) -> list[Source]:
        """Source objects that appeared inline in the model definition."""
        refs = (self.primary,) + self.auxiliary
        return [ref.source for ref in refs if ref.source is not None]


def _operands(stage: Stage) -> Iterable[tuple[Any, Any]]:
    """
    Yield ``(source_value, sub_pipelines)`` for each recognised stage shape.

    ``source_value`` may be None (correlated lookup without ``from``).
    """
    for operator, spec in stage.items():
        if operator == "$lookup" and isinstance(spec, Mapping):
            yield spec.get("from"), [spec.get("pipeline")]
        elif operator == "$unionWith":
            if isinstance(spec, Mapping):
                yield spec.get("coll"), [spec.get("pipeline")]
            else:
                yield spec, []
        elif operator == "$graphLookup" and isinstance(spec, Mapping):
            yield spec.get("from"), []
        elif operator == "$facet" and isinstance(spec, Mapping):
            yield None, list(spec.values())


def scan_stages(stages: Sequence[Stage]) -> tuple[SourceRef, ...]:
    """
    Extract auxiliary source references from a stage sequence.

    Traversal uses an explicit stack, so arbitrarily nested sub-pipelines
    cannot exhaust the call stack. Results are deduplicated by source name in
    discovery order; when the same name is seen both as a string and as an
    object, the object is kept.
    """
    found: dict[str, SourceRef] = {}
    # Stack of stage iterators, so discovery order matches a depth-first read
    stack: list[Iterable[Any]] = [iter(stages)]

    while stack:
        try:
            stage = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue
        if not isinstance(stage, Mapping):
            continue

        for value, sub_pipelines in _operands(stage):
            name = source_name_of(value)
            if name is not None:
                existing = found.get(name)
                if existing is None or (existing.source is None and is_source(value)):
                    found[name] = SourceRef(name, value if is_source(value) else None)
            nested = [p for p in sub_pipelines if isinstance(p, Sequence) and not isinstance(p, (str, bytes))]
            # Push in reverse so the first sub-pipeline is read first
            for pipeline in reversed(nested):
                stack.append(iter(pipeline))

    return tuple(found.values())


def scan_references(model: Model) -> References:
    """
    Scan a model for the sources it reads from.

    Args:
        model: Model to scan

    Returns:
        References with exactly one primary reference and zero or more
        auxiliary references. The primary source never appears among the
        auxiliary references.
    """
    source = model.source
    primary = SourceRef(model.primary_source_name, source if is_source(source) else None)
    auxiliary: list[SourceRef] = []
    for ref in scan_stages(model.stages):
        if ref.name != primary.name:
            auxiliary.append(ref)
        elif primary.source is None and ref.source is not None:
            # Primary named by string, embedded as an object in a stage
            primary = SourceRef(primary.name, ref.source)
    return References(primary=primary, auxiliary=tuple(auxiliary))


def resolve_stages(stages: Sequence[Stage]) -> list[dict[str, Any]]:
    """
    Return a deep copy of *stages* with embedded source objects replaced by names.

    This is the stage sequence handed to the execution engine.
    """

    def _resolve(value: Any) -> Any:
        if is_source(value):
            return value.source_name
        if isinstance(value, Mapping):
            return {k: _resolve(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_resolve(v) for v in value]
        return copy.deepcopy(value)

    return [_resolve(stage) for stage in stages]


def find_write_stages(stages: Sequence[Stage]) -> list[str]:
    """Return top-level write operators (``$out``/``$merge``) present in *stages*."""
    return [op for stage in stages if isinstance(stage, Mapping) for op in stage if op in WRITE_OPERATORS]
