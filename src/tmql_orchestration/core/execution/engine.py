"""
Execution engine interface.

The engine is the injected capability that actually runs a model's stages
against storage and performs the write. The orchestrator only builds the
request, invokes the engine, and normalises what comes back.

An engine is either an object with an ``execute(request)`` method or a plain
callable taking the request. Both sync and async forms are accepted; sync
engines are run on a worker thread.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, Union, runtime_checkable

from tmql_orchestration.core.materialization import MaterializationConfig
from tmql_orchestration.core.model import Model
from tmql_orchestration.core.scanner import resolve_stages, scan_references
from tmql_orchestration.exceptions import ExecutionError
from tmql_orchestration.strategies import write_stage_for


class OutcomeStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionRequest:
    """
    Everything an engine needs to run one model.

    Attributes:
        model_name: Model being executed
        source: Primary source name the stages run against
        auxiliary: Auxiliary source names the stages read from
        stages: Stage sequence with embedded sources resolved to names
        output: Output collection name
        materialization: Write strategy, exactly as declared on the model
        attempt: 1-based attempt number
        cancel_event: Run-level cancellation signal for cooperative engines
    """

    model_name: str
    source: str
    auxiliary: tuple[str, ...]
    stages: tuple[dict[str, Any], ...]
    output: str
    materialization: MaterializationConfig
    attempt: int = 1
    cancel_event: threading.Event | None = field(default=None, compare=False, repr=False)

    @classmethod
    def for_model(
        cls, model: Model, *, attempt: int = 1, cancel_event: threading.Event | None = None
    ) -> "ExecutionRequest":
        refs = scan_references(model)
        return cls(
            model_name=model.name,
            source=refs.primary.name,
            auxiliary=tuple(ref.name for ref in refs.auxiliary),
            stages=tuple(resolve_stages(model.stages)),
            output=model.output,
            materialization=model.materialize,
            attempt=attempt,
            cancel_event=cancel_event,
        )

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def pipeline(self) -> list[dict[str, Any]]:
        """Stages followed by the materialization write stage, ready for ``aggregate``."""
        return [*self.stages, write_stage_for(self.output, self.materialization)]


@dataclass(frozen=True)
class ExecutionOutcome:
    """What an engine reports for one model."""

    status: OutcomeStatus = OutcomeStatus.SUCCEEDED
    document_count: int | None = None
    error: str | BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @classmethod
    def success(cls, document_count: int | None = None) -> "ExecutionOutcome":
        return cls(OutcomeStatus.SUCCEEDED, document_count)

    @classmethod
    def failure(cls, error: str | BaseException) -> "ExecutionOutcome":
        return cls(OutcomeStatus.FAILED, error=error)


EngineResult = Union[ExecutionOutcome, Mapping[str, Any], int, None]


@runtime_checkable
class ExecutionEngine(Protocol):
    """Engine object protocol (sync or async ``execute``)."""

    def execute(self, request: ExecutionRequest) -> EngineResult | Awaitable[EngineResult]: ...


EngineLike = Union[ExecutionEngine, Callable[[ExecutionRequest], Any]]


def engine_callable(engine: EngineLike) -> Callable[[ExecutionRequest], Any]:
    """Return the callable to invoke for *engine*."""
    execute = getattr(engine, "execute", None)
    if callable(execute):
        return execute
    if callable(engine):
        return engine
    raise TypeError(f"Engine must be callable or define execute(request), got {type(engine).__name__}")


def is_async_engine(func: Callable[..., Any]) -> bool:
    """Whether *func* must be awaited (coroutine function or async __call__)."""
    if inspect.iscoroutinefunction(func):
        return True
    call = getattr(func, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


def normalize_outcome(result: Any) -> ExecutionOutcome:
    """
    Convert an engine return value into an ExecutionOutcome.

    Accepted values: ExecutionOutcome, a mapping with ``status`` /
    ``document_count`` / ``error``, an int document count, or None.

    Raises:
        ExecutionError: If the value cannot be interpreted
    """
    if isinstance(result, ExecutionOutcome):
        return result
    if result is None:
        return ExecutionOutcome.success()
    if isinstance(result, bool):
        raise ExecutionError(f"Engine returned a bool ({result}); return an ExecutionOutcome instead")
    if isinstance(result, int):
        return ExecutionOutcome.success(result)
    if isinstance(result, Mapping):
        raw_status = result.get("status", OutcomeStatus.SUCCEEDED)
        error = result.get("error")
        if raw_status in ("success", "ok"):
            raw_status = OutcomeStatus.SUCCEEDED
        elif raw_status in ("error", "failure"):
            raw_status = OutcomeStatus.FAILED
        try:
            status = OutcomeStatus(raw_status)
        except ValueError:
            raise ExecutionError(f"Engine returned unknown status {raw_status!r}") from None
        if error is not None and status == OutcomeStatus.SUCCEEDED and "status" not in result:
            status = OutcomeStatus.FAILED
        count = result.get("document_count", result.get("documents"))
        return ExecutionOutcome(status=status, document_count=count, error=error)
    raise ExecutionError(f"Engine returned unsupported value of type {type(result).__name__}")
