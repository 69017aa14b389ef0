"""
tmql-orchestration exception hierarchy.

All domain-specific exceptions inherit from TmqlError, making it easy
to catch any orchestration error with a single base class while still
allowing fine-grained handling when needed.

Hierarchy::

    TmqlError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── DiscoveryError            - loading a project definition file
    ├── ProjectError              - project construction
    │   ├── ProjectValidationError - fatal validation report (duplicates, unknown refs, cycles)
    │   └── SchedulingError       - scheduling an unvalidated/cyclic graph (programming error)
    ├── ExecutionError            - model execution failures
    │   ├── ModelExecutionError   - single-model failure
    │   ├── ModelTimeoutError     - model exceeded its time budget
    │   └── RunFailedError        - run finished without overall success
    └── MaterializationError      - output write failures
        └── WriteConflictError    - append-mode write collided with an existing document
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tmql_orchestration.core.results import RunResult
    from tmql_orchestration.core.validation import ValidationIssue, ValidationResult


class TmqlError(Exception):
    """Base exception for all tmql-orchestration errors."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(TmqlError):
    """Raised when configuration loading, parsing, or validation fails."""


class DiscoveryError(TmqlError):
    """Raised when a project definition file cannot be loaded."""


# --- Project construction ----------------------------------------------------


class ProjectError(TmqlError):
    """Raised when a project cannot be constructed."""


class ProjectValidationError(ProjectError):
    """Raised when project validation reports one or more fatal errors.

    The full report (errors and warnings) is available as ``result`` so
    callers can render every problem at once.
    """

    def __init__(self, result: "ValidationResult") -> None:
        lines = [f"Project validation failed with {len(result.errors)} error(s):"]
        lines.extend(f"  - {error.message}" for error in result.errors)
        super().__init__("\n".join(lines), details=result.to_dict())
        self.result = result

    @property
    def errors(self) -> tuple["ValidationIssue", ...]:
        return self.result.errors


class SchedulingError(ProjectError):
    """Raised when a graph that contains a cycle is handed to the scheduler."""


# --- Execution ---------------------------------------------------------------


class ExecutionError(TmqlError):
    """Raised when model execution fails."""


class ModelExecutionError(ExecutionError):
    """Raised when a single model fails during execution."""

    def __init__(self, model_name: str, message: str, *, cause: Exception | None = None) -> None:
        full = f"Model '{model_name}' failed: {message}"
        super().__init__(full, details={"model": model_name})
        self.model_name = model_name
        if cause is not None:
            self.__cause__ = cause


class ModelTimeoutError(ExecutionError):
    """Raised when a model does not finish within the configured timeout."""

    def __init__(self, model_name: str, timeout: float) -> None:
        super().__init__(
            f"Model '{model_name}' timed out after {timeout:g}s",
            details={"model": model_name, "timeout": timeout},
        )
        self.model_name = model_name
        self.timeout = timeout


class RunFailedError(ExecutionError):
    """Raised by ``RunResult.raise_for_status()`` when a run did not fully succeed."""

    def __init__(self, result: "RunResult") -> None:
        failed = ", ".join(result.failed) or "none"
        skipped = ", ".join(result.skipped) or "none"
        super().__init__(
            f"Run finished with status '{result.overall_status}' (failed: {failed}; skipped: {skipped})",
            details=result.summary(),
        )
        self.result = result


# --- Materialization ---------------------------------------------------------


class MaterializationError(TmqlError):
    """Raised when writing a model's output fails."""


class WriteConflictError(MaterializationError):
    """Raised when an append-mode write collides with an existing document."""

    def __init__(self, output: str, keys: list[Any]) -> None:
        shown = ", ".join(repr(k) for k in keys[:5])
        if len(keys) > 5:
            shown += f" (+{len(keys) - 5} more)"
        super().__init__(
            f"Append into '{output}' conflicts with {len(keys)} existing document(s): {shown}",
            details={"output": output, "keys": list(keys)},
        )
        self.output = output
        self.keys = list(keys)
