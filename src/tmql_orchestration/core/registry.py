"""
Source registry.

Maps source names to the Collection or Model that provides them. Each Project
owns its own registry; there is no process-wide registry, so independent
projects can coexist in one process.

Conflicts are recorded rather than raised so that the validator can report
every problem at once.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from tmql_orchestration.core.model import Model
from tmql_orchestration.core.source import Collection, SourceType, is_source
from tmql_orchestration.core.types import Source
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.registry")


@dataclass(frozen=True)
class DuplicateModel:
    """A second, distinct model object registered under an existing model name."""

    name: str
    first: Model
    second: Model


@dataclass(frozen=True)
class OutputConflict:
    """Two distinct sources claiming the same source name."""

    name: str
    first: Source
    second: Source


def _describe(source: Source) -> str:
    if source.source_type == SourceType.MODEL:
        return f"model '{source.name}'"
    return f"collection '{source.name}'"


class SourceRegistry:
    """Canonical name -> Source mapping for one project."""

    def __init__(self, sources: Iterable[Source] = ()):
        self._sources: dict[str, Source] = {}  # source name -> source
        self._models: dict[str, Model] = {}  # model name -> first model registered under it
        self._registered: list[Source] = []
        self._seen: set[int] = set()  # id() of every registered object
        self.duplicates: list[DuplicateModel] = []
        self.output_conflicts: list[OutputConflict] = []

        for source in sources:
            self.register(source)

    def register(self, source: Source) -> bool:
        """
        Register a source.

        Registering the same object again is a no-op.

        Args:
            source: Collection or Model to register

        Returns:
            True if the object was newly registered
        """
        if not is_source(source):
            raise TypeError(f"Expected a Collection or Model, got {type(source).__name__}")
        if id(source) in self._seen:
            return False

        # Collections are value objects: an equal collection is the same source
        if source.source_type == SourceType.COLLECTION:
            existing = self._sources.get(source.source_name)
            if existing is not None and existing == source:
                return False

        self._seen.add(id(source))
        self._registered.append(source)

        if source.source_type == SourceType.MODEL:
            first = self._models.get(source.name)
            if first is None:
                self._models[source.name] = source
            else:
                logger.debug(f"Duplicate model name '{source.name}' registered")
                self.duplicates.append(DuplicateModel(source.name, first, source))
                return True

        claimed = self._sources.get(source.source_name)
        if claimed is None:
            self._sources[source.source_name] = source
        else:
            logger.debug(
                f"Source name '{source.source_name}' claimed by {_describe(claimed)} and {_describe(source)}"
            )
            self.output_conflicts.append(OutputConflict(source.source_name, claimed, source))
        return True

    def register_collections(self, *names: str) -> list[Collection]:
        """Register base collections by name and return them."""
        collections = [Collection(name) for name in names]
        for collection in collections:
            self.register(collection)
        return collections

    def resolve(self, name: str) -> Source | None:
        """Resolve a source name to its Collection or Model."""
        return self._sources.get(name)

    def get_model(self, name: str) -> Model | None:
        """Look up a model by model name (not output name)."""
        return self._models.get(name)

    def models(self) -> list[Model]:
        """All registered model objects, in registration order, duplicates included."""
        return [s for s in self._registered if s.source_type == SourceType.MODEL]

    def collections(self) -> list[Collection]:
        return [s for s in self._registered if s.source_type == SourceType.COLLECTION]

    def copy(self) -> "SourceRegistry":
        """Return an independent registry with the same registrations."""
        return SourceRegistry(self._registered)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __iter__(self) -> Iterator[str]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)
