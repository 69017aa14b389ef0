"""
Project facade.

A Project is built from target models. Construction discovers every model the
targets depend on, validates the result and schedules it; it either succeeds
completely or raises ProjectValidationError. A constructed Project is
immutable and can be run any number of times, concurrently included.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from tmql_orchestration.config import Config
from tmql_orchestration.core.dependencies import DependencyGraph, GraphBuilder
from tmql_orchestration.core.execution.config import RunOptions
from tmql_orchestration.core.execution.engine import EngineLike
from tmql_orchestration.core.execution.executor import Executor
from tmql_orchestration.core.model import Model
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.results import RunResult
from tmql_orchestration.core.scheduler import ExecutionPlan
from tmql_orchestration.core.source import Collection, is_source
from tmql_orchestration.core.validation import ValidationIssue, ValidationResult, Validator
from tmql_orchestration.utils.async_utils import dual
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.project")


def _as_targets(targets: Model | Iterable[Model]) -> list[Model]:
    if isinstance(targets, Model):
        return [targets]
    if isinstance(targets, (str, bytes, Mapping)):
        raise TypeError(f"targets must be Model objects, got {type(targets).__name__}")
    result = list(targets)
    for target in result:
        if not isinstance(target, Model):
            raise TypeError(f"targets must be Model objects, got {type(target).__name__}")
    return result


class Project:
    """
    Validated, scheduled set of models.

    Args:
        targets: Target model(s); their transitive dependencies are discovered
        sources: Extra sources to register: Collections, collection names or
            Models (models not reachable from a target are reported as unused)
        registry: Registry to start from; it is copied, never mutated
        config: Project config (Config or mapping); its ``executor`` section
            provides the default run options
        name: Project name (default: config ``name`` or ``"tmql"``)

    Raises:
        ProjectValidationError: If validation finds any fatal error
        ConfigurationError: If the config's executor section is invalid

    Example:
        orders = Collection("orders")
        daily = model("daily_totals", orders, [{"$group": {...}}])
        project = Project([daily])
        result = project.run(engine)
    """

    def __init__(
        self,
        targets: Model | Iterable[Model],
        *,
        sources: Iterable[Collection | Model | str] = (),
        registry: SourceRegistry | None = None,
        config: Config | Mapping[str, Any] | None = None,
        name: str | None = None,
    ):
        self.config = config if isinstance(config, Config) else Config(config)
        self.name = name or self.config.name or "tmql"
        self.default_options = RunOptions.from_config(self.config)

        target_models = _as_targets(targets)
        registry = registry.copy() if registry is not None else SourceRegistry()
        for source in sources:
            if isinstance(source, str):
                registry.register_collections(source)
            elif is_source(source):
                registry.register(source)
            else:
                raise TypeError(f"sources must be Collections, Models or names, got {type(source).__name__}")

        graph = GraphBuilder(registry).build(target_models)
        validation = Validator(registry).validate(graph)
        if not validation.ok:
            logger.debug(f"Project '{self.name}' failed validation with {len(validation.errors)} error(s)")
        validation.raise_for_errors()

        self._registry = registry
        self.graph: DependencyGraph = graph
        self.validation: ValidationResult = validation
        self._plan = ExecutionPlan.from_graph(graph)

        logger.info(
            f"Project '{self.name}': {len(self._plan)} model(s) in {len(self._plan.batches)} batch(es)"
            + (f", {len(validation.warnings)} warning(s)" if validation.warnings else "")
        )

    @property
    def registry(self) -> SourceRegistry:
        """Copy of the sources known to the project; changing it does not affect the plan."""
        return self._registry.copy()

    @property
    def targets(self) -> tuple[Model, ...]:
        return tuple(self.graph.models[name] for name in self.graph.targets)

    @property
    def models(self) -> Mapping[str, Model]:
        """Every discovered model, keyed by model name."""
        return self.graph.models

    @property
    def order(self) -> tuple[Model, ...]:
        return self._plan.order

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return self.validation.warnings

    def validate(self) -> ValidationResult:
        """
        Return the validation report.

        A constructed project never has errors, so the report only carries
        warnings; it is the same report computed at construction.
        """
        return self.validation

    def plan(self) -> ExecutionPlan:
        """Return the execution plan (immutable and shareable)."""
        return self._plan

    def options(self, options: RunOptions | None = None, **overrides: Any) -> RunOptions:
        """Resolve run options: explicit *options* or the config defaults, then *overrides*."""
        return (options or self.default_options).with_overrides(**overrides)

    @dual
    async def run(self, engine: EngineLike, options: RunOptions | None = None, **overrides: Any) -> RunResult:
        """
        Execute the plan with *engine*; blocks in sync code, awaitable in async code.

        Args:
            engine: Engine object (``execute(request)``) or callable, sync or async
            options: Run options (default: from the project config)
            **overrides: Individual RunOptions fields, e.g. ``max_workers=1``

        Returns:
            A fresh RunResult; engine failures are reported in it, not raised
        """
        return await Executor(engine, self.options(options, **overrides)).execute(self._plan)

    def run_sync(self, engine: EngineLike, options: RunOptions | None = None, **overrides: Any) -> RunResult:
        """Blocking ``run`` (must not be called from a running event loop)."""
        return asyncio.run(Executor(engine, self.options(options, **overrides)).execute(self._plan))

    def describe(self) -> dict[str, Any]:
        """Project summary for display and JSON output."""
        return {
            "name": self.name,
            "targets": list(self.graph.targets),
            "plan": self._plan.to_dict(),
            "warnings": [w.to_dict() for w in self.validation.warnings],
        }

    def __repr__(self) -> str:
        return f"Project(name={self.name!r}, models={list(self._plan.model_names)!r})"


__all__ = ["Project"]
