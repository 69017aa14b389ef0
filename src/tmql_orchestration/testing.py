"""
Testing utilities for tmql-orchestration projects.

Provides an in-memory engine so projects can be run end to end without a
database. The engine does not interpret aggregation stages: each model's
output is its primary source documents, optionally passed through a Python
transform registered for the model. Materialization is applied for real, so
replace/upsert/append semantics (and append conflicts) behave as in storage.

Usage:
    from tmql_orchestration import Collection, Project, model
    from tmql_orchestration.testing import MemoryEngine

    users = Collection("users")
    active = model("active_users", users, [{"$match": {"active": True}}])

    engine = MemoryEngine(
        {"users": [{"_id": 1, "active": True}, {"_id": 2, "active": False}]},
        transforms={"active_users": lambda docs, aux: [d for d in docs if d["active"]]},
    )
    result = Project([active]).run(engine)
    assert result.ok
    assert engine.documents("active_users") == [{"_id": 1, "active": True}]
"""

from __future__ import annotations

import asyncio
import copy
import threading
import time
from collections.abc import Callable, Iterable, Mapping

from tmql_orchestration.core.execution.engine import ExecutionOutcome, ExecutionRequest
from tmql_orchestration.strategies import get_strategy
from tmql_orchestration.strategies.base import Document

#: ``transform(primary_docs, {auxiliary_name: docs})`` -> output documents
Transform = Callable[[list[Document], dict[str, list[Document]]], Iterable[Document]]


class MemoryEngine:
    """
    Thread-safe in-memory engine.

    Attributes:
        collections: Collection name -> documents (outputs are written here too)
        transforms: Model name -> transform
        requests: Every request received, in arrival order
    """

    def __init__(
        self,
        collections: Mapping[str, Iterable[Document]] | None = None,
        transforms: Mapping[str, Transform] | None = None,
        *,
        delays: Mapping[str, float] | None = None,
    ):
        self.collections: dict[str, list[Document]] = {
            name: [dict(doc) for doc in docs] for name, docs in (collections or {}).items()
        }
        self.transforms: dict[str, Transform] = dict(transforms or {})
        self.delays: dict[str, float] = dict(delays or {})
        self.requests: list[ExecutionRequest] = []
        self._failures: dict[str, tuple[BaseException | str, int | None]] = {}
        self._lock = threading.Lock()

    def fail(
        self, model_name: str, error: BaseException | str = "simulated failure", *, times: int | None = None
    ) -> "MemoryEngine":
        """
        Make *model_name* fail.

        A BaseException is raised from ``execute``; a string is reported as a
        failed outcome. With *times*, only the first *times* attempts fail.
        """
        self._failures[model_name] = (error, times)
        return self

    @property
    def executed(self) -> list[str]:
        """Model names in the order their requests arrived."""
        return [r.model_name for r in self.requests]

    def documents(self, name: str) -> list[Document]:
        """Copy of a collection's documents (empty if it does not exist)."""
        with self._lock:
            return copy.deepcopy(self.collections.get(name, []))

    def _injected_failure(self, request: ExecutionRequest) -> BaseException | str | None:
        with self._lock:
            entry = self._failures.get(request.model_name)
            if entry is None:
                return None
            error, times = entry
            if times is not None:
                if times <= 0:
                    return None
                self._failures[request.model_name] = (error, times - 1)
            return error

    def _materialize(self, request: ExecutionRequest) -> ExecutionOutcome:
        failure = self._injected_failure(request)
        if isinstance(failure, BaseException):
            raise failure
        if failure is not None:
            return ExecutionOutcome.failure(failure)

        with self._lock:
            primary = copy.deepcopy(self.collections.get(request.source, []))
            auxiliary = {name: copy.deepcopy(self.collections.get(name, [])) for name in request.auxiliary}

        transform = self.transforms.get(request.model_name)
        documents = list(transform(primary, auxiliary)) if transform is not None else primary

        strategy = get_strategy(request.materialization.mode)
        with self._lock:
            existing = self.collections.get(request.output, [])
            self.collections[request.output] = strategy.apply(
                existing, documents, request.materialization, request.output
            )
        return ExecutionOutcome.success(len(documents))

    def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        with self._lock:
            self.requests.append(request)
        delay = self.delays.get(request.model_name)
        if delay:
            time.sleep(delay)
        return self._materialize(request)


class AsyncMemoryEngine(MemoryEngine):
    """MemoryEngine with an async ``execute``; delays use ``asyncio.sleep``."""

    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:  # type: ignore[override]
        with self._lock:
            self.requests.append(request)
        delay = self.delays.get(request.model_name)
        if delay:
            await asyncio.sleep(delay)
        return self._materialize(request)


# ---------------------------------------------------------------------------
# Pytest fixtures (auto-registered via pytest11 entry point)
# ---------------------------------------------------------------------------

try:
    import pytest

    @pytest.fixture
    def memory_engine() -> MemoryEngine:
        """Provide an empty MemoryEngine."""
        return MemoryEngine()

except ImportError:
    # pytest not installed - fixtures are not registered
    pass


__all__ = ["AsyncMemoryEngine", "MemoryEngine", "Transform"]
