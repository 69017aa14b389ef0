"""
Project graph validation.

Runs eagerly when a project is constructed. Fatal errors prevent the project
from being created; warnings are advisory and surfaced to the caller.

Reports are deterministic: issues are ordered by model name, then kind, then
discovery order, so validating identical input twice yields identical output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from tmql_orchestration.core.dependencies import DependencyGraph
from tmql_orchestration.core.materialization import MaterializationMode
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.scanner import find_write_stages
from tmql_orchestration.core.source import SourceType
from tmql_orchestration.exceptions import ProjectValidationError
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.validation")


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class ErrorKind(StrEnum):
    """Fatal validation errors."""

    DUPLICATE_MODEL_NAME = "duplicate_model_name"
    DUPLICATE_OUTPUT_NAME = "duplicate_output_name"
    UNKNOWN_SOURCE_REFERENCE = "unknown_source_reference"
    CYCLIC_DEPENDENCY = "cyclic_dependency"


class WarningKind(StrEnum):
    """Advisory validation findings."""

    UNUSED_MODEL = "unused_model"
    APPEND_WITHOUT_KEY = "append_without_key"
    WRITE_STAGE_IN_PIPELINE = "write_stage_in_pipeline"


# Kind ordering used as the second sort key
_KIND_ORDER = {kind: i for i, kind in enumerate([*ErrorKind, *WarningKind])}


@dataclass(frozen=True)
class ValidationIssue:
    """
    A single validation error or warning.

    Attributes:
        kind: What was found
        message: Human-readable description naming the offending model(s)
        model: Primary model the issue is about (used for ordering)
        source: Source name involved, for reference errors
        models: Every model involved
        cycle: Full cycle path for cyclic dependencies, e.g. ``("a", "b", "a")``
    """

    kind: ErrorKind | WarningKind
    message: str
    model: str | None = None
    source: str | None = None
    models: tuple[str, ...] = ()
    cycle: tuple[str, ...] = ()
    index: int = field(default=0, compare=False, repr=False)

    @property
    def severity(self) -> Severity:
        return Severity.ERROR if isinstance(self.kind, ErrorKind) else Severity.WARNING

    def sort_key(self) -> tuple[str, int, int]:
        return (self.model or "", _KIND_ORDER[self.kind], self.index)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "model": self.model,
        }
        if self.source is not None:
            result["source"] = self.source
        if self.models:
            result["models"] = list(self.models)
        if self.cycle:
            result["cycle"] = list(self.cycle)
        return result


# Public aliases matching the report vocabulary
ValidationError = ValidationIssue
ValidationWarning = ValidationIssue


@dataclass(frozen=True)
class ValidationResult:
    """Validation report: fatal errors and advisory warnings."""

    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_of(self, kind: ErrorKind) -> list[ValidationIssue]:
        return [e for e in self.errors if e.kind == kind]

    def raise_for_errors(self) -> None:
        """Raise ProjectValidationError if the report holds any fatal error."""
        if self.errors:
            raise ProjectValidationError(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def find_cycles(graph: DependencyGraph) -> list[tuple[str, ...]]:
    """
    Find every distinct cycle among the graph's models.

    Iterative depth-first search with an explicit path; each cycle is rotated
    to start at its smallest model name and reported once.

    Returns:
        Cycles as closed paths, e.g. ``("a", "b", "a")`` meaning a reads from
        b and b reads from a
    """
    cycles: list[tuple[str, ...]] = []
    seen: set[tuple[str, ...]] = set()
    visited: set[str] = set()

    for root in sorted(graph.models):
        if root in visited:
            continue
        path: list[str] = [root]
        on_path: set[str] = {root}
        visited.add(root)
        stack = [iter(sorted(graph.model_dependencies(root)))]

        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            if neighbor in on_path:
                loop = path[path.index(neighbor) :]
                start = loop.index(min(loop))
                canonical = tuple(loop[start:] + loop[:start])
                if canonical not in seen:
                    seen.add(canonical)
                    cycles.append(canonical + (canonical[0],))
                continue
            if neighbor in visited:
                continue
            visited.add(neighbor)
            path.append(neighbor)
            on_path.add(neighbor)
            stack.append(iter(sorted(graph.model_dependencies(neighbor))))

    return sorted(cycles)


class Validator:
    """Checks a built graph against its registry."""

    def __init__(self, registry: SourceRegistry):
        self.registry = registry

    def validate(self, graph: DependencyGraph) -> ValidationResult:
        """
        Validate *graph*.

        Args:
            graph: Graph built from the same registry

        Returns:
            ValidationResult with sorted errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        self._check_duplicates(errors)
        self._check_references(graph, errors)
        self._check_cycles(graph, errors)
        self._check_unused(graph, warnings)
        self._check_materialization(graph, warnings)

        result = ValidationResult(
            errors=tuple(sorted(errors, key=ValidationIssue.sort_key)),
            warnings=tuple(sorted(warnings, key=ValidationIssue.sort_key)),
        )
        for warning in result.warnings:
            logger.warning(warning.message)
        if result.errors:
            logger.debug(f"Validation found {len(result.errors)} error(s)")
        return result

    def _check_duplicates(self, errors: list[ValidationIssue]) -> None:
        for dup in self.registry.duplicates:
            errors.append(
                ValidationIssue(
                    kind=ErrorKind.DUPLICATE_MODEL_NAME,
                    message=f"Duplicate model name '{dup.name}': declared more than once",
                    model=dup.name,
                    models=(dup.name,),
                    index=len(errors),
                )
            )
        for conflict in self.registry.output_conflicts:
            owners = []
            for source in (conflict.first, conflict.second):
                kind = "model" if source.source_type == SourceType.MODEL else "collection"
                owners.append(f"{kind} '{source.name}'")
            models = tuple(
                s.name for s in (conflict.first, conflict.second) if s.source_type == SourceType.MODEL
            )
            errors.append(
                ValidationIssue(
                    kind=ErrorKind.DUPLICATE_OUTPUT_NAME,
                    message=f"Source name '{conflict.name}' is provided by both {owners[0]} and {owners[1]}",
                    model=models[0] if models else None,
                    source=conflict.name,
                    models=models,
                    index=len(errors),
                )
            )

    def _check_references(self, graph: DependencyGraph, errors: list[ValidationIssue]) -> None:
        reported: set[tuple[str, str]] = set()
        for edge in graph.edges:
            if edge.source in self.registry or (edge.model, edge.source) in reported:
                continue
            reported.add((edge.model, edge.source))
            errors.append(
                ValidationIssue(
                    kind=ErrorKind.UNKNOWN_SOURCE_REFERENCE,
                    message=(
                        f"Model '{edge.model}' references unknown source '{edge.source}' "
                        f"({edge.kind.value} reference)"
                    ),
                    model=edge.model,
                    source=edge.source,
                    models=(edge.model,),
                    index=len(errors),
                )
            )

    def _check_cycles(self, graph: DependencyGraph, errors: list[ValidationIssue]) -> None:
        for cycle in find_cycles(graph):
            errors.append(
                ValidationIssue(
                    kind=ErrorKind.CYCLIC_DEPENDENCY,
                    message=f"Cyclic dependency: {' -> '.join(cycle)}",
                    model=cycle[0],
                    models=tuple(sorted(set(cycle))),
                    cycle=cycle,
                    index=len(errors),
                )
            )

    def _check_unused(self, graph: DependencyGraph, warnings: list[ValidationIssue]) -> None:
        for model in self.registry.models():
            if model.name in graph.models:
                continue
            warnings.append(
                ValidationIssue(
                    kind=WarningKind.UNUSED_MODEL,
                    message=f"Model '{model.name}' is registered but no target depends on it; it will not run",
                    model=model.name,
                    models=(model.name,),
                    index=len(warnings),
                )
            )

    def _check_materialization(self, graph: DependencyGraph, warnings: list[ValidationIssue]) -> None:
        for name, model in graph.models.items():
            config = model.materialize
            if config.mode == MaterializationMode.APPEND and not config.key:
                warnings.append(
                    ValidationIssue(
                        kind=WarningKind.APPEND_WITHOUT_KEY,
                        message=(
                            f"Model '{name}' appends to '{model.output}' without a key; "
                            f"conflicts will be detected on '_id' only"
                        ),
                        model=name,
                        models=(name,),
                        index=len(warnings),
                    )
                )
            write_ops = find_write_stages(model.stages)
            if write_ops:
                warnings.append(
                    ValidationIssue(
                        kind=WarningKind.WRITE_STAGE_IN_PIPELINE,
                        message=(
                            f"Model '{name}' contains {', '.join(write_ops)} in its stages; "
                            f"output is already written by its '{config.mode.value}' materialization"
                        ),
                        model=name,
                        models=(name,),
                        index=len(warnings),
                    )
                )
