"""
Execution scheduling.

Computes a deterministic topological order and parallel batches from a
validated dependency graph. Both primary and auxiliary edges impose ordering:
an auxiliary reference reads materialized data exactly like a primary one.
"""

from __future__ import annotations

import heapq
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from tmql_orchestration.core.dependencies import DependencyGraph
from tmql_orchestration.core.model import Model
from tmql_orchestration.exceptions import SchedulingError


def _in_degrees(graph: DependencyGraph) -> dict[str, int]:
    return {name: len(graph.model_dependencies(name)) for name in graph.models}


def topological_sort(graph: DependencyGraph) -> list[str]:
    """
    Topological sort of model names.

    Kahn's algorithm with a min-heap: among models with no remaining ordering
    constraint, the smallest name goes first, so identical input always yields
    the identical order.

    Raises:
        SchedulingError: If the graph contains a cycle
    """
    in_degree = _in_degrees(graph)
    heap = [name for name, degree in in_degree.items() if degree == 0]
    heapq.heapify(heap)
    result: list[str] = []

    while heap:
        name = heapq.heappop(heap)
        result.append(name)
        for dependent in graph.get_dependents(name):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(heap, dependent)

    if len(result) != len(in_degree):
        stuck = sorted(set(in_degree) - set(result))
        raise SchedulingError(
            f"Cannot schedule a cyclic graph; unresolved models: {', '.join(stuck)}",
            details={"models": stuck},
        )
    return result


def schedule(graph: DependencyGraph) -> tuple[Model, ...]:
    """
    Return the graph's models in execution order (dependencies first).

    Precondition: the graph passed validation. Scheduling a cyclic graph is a
    programming error and raises SchedulingError.
    """
    return tuple(graph.models[name] for name in topological_sort(graph))


def compute_batches(graph: DependencyGraph) -> tuple[tuple[str, ...], ...]:
    """
    Group models into execution layers.

    A model's layer is one more than the deepest layer among its model
    dependencies. Models in the same layer have no edges between them and may
    run concurrently. Names are sorted within each batch.

    Raises:
        SchedulingError: If the graph contains a cycle
    """
    layers: dict[str, int] = {}
    for name in topological_sort(graph):
        deps = graph.model_dependencies(name)
        layers[name] = 1 + max((layers[d] for d in deps), default=-1)

    grouped: dict[int, list[str]] = {}
    for name, layer in layers.items():
        grouped.setdefault(layer, []).append(name)
    return tuple(tuple(sorted(grouped[layer])) for layer in sorted(grouped))


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Immutable, inspectable execution plan.

    Attributes:
        order: Models in execution order
        batches: Model names grouped into layers that may run concurrently
        dependencies: Model name -> names of the models it waits for
    """

    order: tuple[Model, ...]
    batches: tuple[tuple[str, ...], ...]
    dependencies: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", MappingProxyType(dict(self.dependencies)))

    @classmethod
    def from_graph(cls, graph: DependencyGraph) -> "ExecutionPlan":
        order = schedule(graph)
        return cls(
            order=order,
            batches=compute_batches(graph),
            dependencies={m.name: tuple(graph.model_dependencies(m.name)) for m in order},
        )

    @property
    def model_names(self) -> tuple[str, ...]:
        return tuple(m.name for m in self.order)

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self):
        return iter(self.order)

    def batch_of(self, model_name: str) -> int:
        """Index of the batch containing *model_name*."""
        for i, batch in enumerate(self.batches):
            if model_name in batch:
                return i
        raise KeyError(model_name)

    def dependents_of(self, model_name: str) -> set[str]:
        """All models that transitively wait for *model_name*."""
        reverse: dict[str, list[str]] = {}
        for name, deps in self.dependencies.items():
            for dep in deps:
                reverse.setdefault(dep, []).append(name)
        seen: set[str] = set()
        stack = list(reverse.get(model_name, []))
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(reverse.get(current, []))
        return seen

    def visualize_layers(self) -> str:
        """
        Visualize the plan as layers (execution levels).

        Models in the same layer can run in parallel.
        """
        lines = []
        for layer_num, layer_models in enumerate(self.batches):
            lines.append(f"Layer {layer_num}: {' ── '.join(layer_models)}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": list(self.model_names),
            "batches": [list(b) for b in self.batches],
            "models": {
                m.name: {
                    "source": m.primary_source_name,
                    "output": m.output,
                    "materialize": m.materialize.to_dict(),
                    "depends_on": list(self.dependencies.get(m.name, ())),
                }
                for m in self.order
            },
        }
