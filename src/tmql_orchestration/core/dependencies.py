"""
Dependency graph building.

Walks primary and auxiliary references from a set of target models to build
the graph of every model needed to produce them. Cycle reporting is left to
the validator; the builder only guarantees that it terminates on cyclic input.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from tmql_orchestration.core.model import Model
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.scanner import References, scan_references
from tmql_orchestration.core.source import SourceType
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.dependencies")


class EdgeKind(StrEnum):
    """How a model references a source."""

    PRIMARY = "primary"  # The source the model is built from
    AUXILIARY = "auxiliary"  # Referenced inside the stages ($lookup, $unionWith, ...)


@dataclass(frozen=True, order=True)
class DependencyEdge:
    """``model`` reads from ``source``."""

    model: str
    source: str
    kind: EdgeKind


class DependencyGraph:
    """
    Immutable dependency graph of the models reachable from a set of targets.

    Attributes:
        targets: Target model names, in the order given
        models: Reachable models keyed by model name, in discovery order
        edges: Every dependency edge, in discovery order
        repeat_edges: Edges pointing back at a model still being expanded
    """

    def __init__(
        self,
        targets: Iterable[str],
        models: Mapping[str, Model],
        edges: Iterable[DependencyEdge],
        references: Mapping[str, References] | None = None,
        repeat_edges: Iterable[DependencyEdge] = (),
    ):
        self.targets: tuple[str, ...] = tuple(targets)
        self.models: Mapping[str, Model] = MappingProxyType(dict(models))
        self.edges: tuple[DependencyEdge, ...] = tuple(edges)
        self.repeat_edges: tuple[DependencyEdge, ...] = tuple(repeat_edges)
        self._references: Mapping[str, References] = MappingProxyType(dict(references or {}))

        # output name -> model name, for models inside the graph
        self._by_output: dict[str, str] = {m.output: name for name, m in self.models.items()}
        self._dependencies: dict[str, list[str]] = {name: [] for name in self.models}
        self._dependents: dict[str, list[str]] = {name: [] for name in self.models}
        for edge in self.edges:
            deps = self._dependencies.setdefault(edge.model, [])
            if edge.source not in deps:
                deps.append(edge.source)
            upstream = self._by_output.get(edge.source)
            if upstream is not None and edge.model not in self._dependents[upstream]:
                self._dependents[upstream].append(edge.model)

    def __contains__(self, model_name: object) -> bool:
        return model_name in self.models

    def __len__(self) -> int:
        return len(self.models)

    def get_dependencies(self, model_name: str) -> list[str]:
        """Source names a model reads from (primary first)."""
        return list(self._dependencies.get(model_name, []))

    def model_dependencies(self, model_name: str) -> list[str]:
        """Names of the models in this graph that *model_name* reads from."""
        result = []
        for source in self._dependencies.get(model_name, []):
            upstream = self._by_output.get(source)
            if upstream is not None and upstream not in result:
                result.append(upstream)
        return result

    def get_dependents(self, model_name: str) -> list[str]:
        """Models in this graph that read from *model_name*."""
        return list(self._dependents.get(model_name, []))

    def get_references(self, model_name: str) -> References | None:
        return self._references.get(model_name)

    def model_for_source(self, source_name: str) -> Model | None:
        """Return the graph model producing *source_name*, if any."""
        name = self._by_output.get(source_name)
        return self.models[name] if name is not None else None

    def downstream(self, model_name: str) -> set[str]:
        """All models transitively depending on *model_name*."""
        seen: set[str] = set()
        stack = list(self._dependents.get(model_name, []))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._dependents.get(current, []))
        return seen

    def visualize_tree(self) -> str:
        """
        Render the graph as a tree from each target down to its sources.

        Shows dependencies with tree branches (├─, └─); auxiliary references
        are marked ``(aux)`` and repeated nodes ``(cyclic reference)``.
        """
        lines: list[str] = []
        kinds = {(e.model, e.source): e.kind for e in self.edges}

        for target in self.targets:
            if target not in self.models:
                continue
            lines.append(target)
            deps = self.get_dependencies(target)
            # (source_name, prefix, is_last, ancestors, edge_kind)
            stack = [
                (src, "", i == len(deps) - 1, (target,), kinds.get((target, src)))
                for i, src in reversed(list(enumerate(deps)))
            ]
            while stack:
                source, prefix, is_last, ancestors, kind = stack.pop()
                branch = "└─ " if is_last else "├─ "
                label = source + (" (aux)" if kind == EdgeKind.AUXILIARY else "")
                upstream = self._by_output.get(source)
                if upstream is not None and upstream in ancestors:
                    lines.append(f"{prefix}{branch}{label} (cyclic reference)")
                    continue
                lines.append(f"{prefix}{branch}{label}")
                if upstream is None:
                    continue
                deps = self.get_dependencies(upstream)
                extension = "   " if is_last else "│  "
                for i, dep in reversed(list(enumerate(deps))):
                    stack.append(
                        (dep, prefix + extension, i == len(deps) - 1, ancestors + (upstream,), kinds.get((upstream, dep)))
                    )
        return "\n".join(lines)


class GraphBuilder:
    """
    Builds a DependencyGraph from target models.

    Source objects embedded in model definitions (a Model passed as another
    model's source, or a Collection inside a ``$lookup``) are registered into
    the registry as they are discovered.
    """

    def __init__(self, registry: SourceRegistry):
        self.registry = registry

    def build(self, targets: Iterable[Model]) -> DependencyGraph:
        """
        Discover every model transitively required by *targets*.

        Uses an iterative depth-first walk with an explicit in-progress set, so
        cyclic input terminates and deep chains cannot overflow the call stack.

        Args:
            targets: Target ("leaf") models

        Returns:
            DependencyGraph containing the targets and their transitive model
            dependencies only
        """
        targets = list(targets)
        for target in targets:
            self.registry.register(target)

        models: dict[str, Model] = {}
        references: dict[str, References] = {}
        edges: list[DependencyEdge] = []
        repeat_edges: list[DependencyEdge] = []
        done: set[int] = set()  # id() of fully expanded models
        in_progress: set[int] = set()

        for target in targets:
            if id(target) in done:
                continue
            # Frames: (model, iterator over references still to visit)
            stack: list[tuple[Model, list]] = [(target, self._expand(target, models, references, edges))]
            in_progress.add(id(target))

            while stack:
                current, pending = stack[-1]
                if not pending:
                    stack.pop()
                    in_progress.discard(id(current))
                    done.add(id(current))
                    continue

                edge, upstream = pending.pop(0)
                if upstream is None or id(upstream) in done:
                    continue
                if id(upstream) in in_progress:
                    logger.debug(f"Repeat edge {edge.model} -> {edge.source} not followed")
                    repeat_edges.append(edge)
                    continue
                in_progress.add(id(upstream))
                stack.append((upstream, self._expand(upstream, models, references, edges)))

        logger.debug(f"Discovered {len(models)} model(s) from {len(targets)} target(s): {', '.join(models)}")
        return DependencyGraph(
            targets=[t.name for t in targets],
            models=models,
            edges=edges,
            references=references,
            repeat_edges=repeat_edges,
        )

    def _expand(
        self,
        model: Model,
        models: dict[str, Model],
        references: dict[str, References],
        edges: list[DependencyEdge],
    ) -> list[tuple[DependencyEdge, Model | None]]:
        """Scan one model, record its edges and return the models to visit next."""
        refs = scan_references(model)
        for source in refs.embedded_sources():
            self.registry.register(source)

        # A duplicate name keeps the first model; the validator reports the clash
        models.setdefault(model.name, model)
        references.setdefault(model.name, refs)

        pending: list[tuple[DependencyEdge, Model | None]] = []
        ref_kinds = [(refs.primary, EdgeKind.PRIMARY)] + [(r, EdgeKind.AUXILIARY) for r in refs.auxiliary]
        for ref, kind in ref_kinds:
            edge = DependencyEdge(model=model.name, source=ref.name, kind=kind)
            edges.append(edge)
            # Follow the object that was embedded, else whatever the name resolves to
            upstream = ref.source if ref.source is not None else self.registry.resolve(ref.name)
            if upstream is not None and upstream.source_type == SourceType.MODEL:
                pending.append((edge, upstream))
            else:
                pending.append((edge, None))
        return pending


def build_dependency_graph(targets: Iterable[Model], registry: SourceRegistry | None = None) -> DependencyGraph:
    """
    Build a dependency graph for *targets*.

    Args:
        targets: Target models
        registry: Registry to resolve names against (a fresh one if omitted)

    Returns:
        DependencyGraph instance
    """
    return GraphBuilder(registry if registry is not None else SourceRegistry()).build(targets)
