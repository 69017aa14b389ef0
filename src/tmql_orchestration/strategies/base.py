"""
Base strategy interface.

A strategy knows how to express one materialization mode as a terminal
aggregation write stage, and how to apply it to an in-memory document list.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.exceptions import MaterializationError

Document = dict[str, Any]

_MISSING = object()


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Read a dotted field path from a document (``_MISSING`` if absent)."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _freeze(value: Any) -> Any:
    """Make a key value hashable."""
    if isinstance(value, Mapping):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def document_key(document: Mapping[str, Any], key: Sequence[str], output: str) -> tuple[Any, ...]:
    """
    Extract the key tuple of *document*.

    Raises:
        MaterializationError: If a key field is missing
    """
    values = []
    for path in key:
        value = get_path(document, path)
        if value is _MISSING:
            raise MaterializationError(
                f"Document written to '{output}' is missing key field '{path}'",
                details={"output": output, "field": path},
            )
        values.append(_freeze(value))
    return tuple(values)


class Strategy(ABC):
    """Base class for materialization strategies."""

    @abstractmethod
    def write_stage(self, output: str, config: MaterializationConfig) -> dict[str, Any]:
        """
        Build the terminal write stage for this strategy.

        Args:
            output: Output collection name
            config: Model materialization config

        Returns:
            An aggregation stage such as ``{"$out": "users"}``
        """

    @abstractmethod
    def apply(
        self,
        existing: Sequence[Document],
        incoming: Sequence[Document],
        config: MaterializationConfig,
        output: str,
    ) -> list[Document]:
        """
        Apply the write to an in-memory collection.

        Args:
            existing: Current documents of the output collection
            incoming: Documents produced by the model
            config: Model materialization config
            output: Output collection name (for error messages)

        Returns:
            The new contents of the output collection
        """
