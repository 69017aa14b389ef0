"""
Run result tracking.

A RunResult represents one ``run()`` of a project plan.
A ModelRunStats represents the execution of an individual model within it.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from tmql_orchestration.exceptions import RunFailedError


class ModelStatus(StrEnum):
    """Per-model execution status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Never attempted


class RunStatus(StrEnum):
    """Overall run status."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"


class SkipReason(StrEnum):
    """Why a model was never attempted."""

    UPSTREAM_FAILED = "upstream_failed"
    RUN_HALTED = "run_halted"
    CANCELLED = "cancelled"


@dataclass
class ModelRunStats:
    """Execution statistics for one model in one run."""

    model_name: str
    output: str = ""
    materialization: str = ""
    status: ModelStatus = ModelStatus.PENDING
    attempts: int = 0

    # Timing (epoch seconds)
    started_at: float | None = None
    completed_at: float | None = None

    document_count: int | None = None

    # Errors
    error_type: str | None = None
    error_message: str | None = None
    error: BaseException | None = field(default=None, repr=False, compare=False)

    # Skip tracking
    skipped_reason: SkipReason | None = None
    failed_dependencies: list[str] = field(default_factory=list)

    def start(self) -> None:
        """Mark the model as started."""
        self.status = ModelStatus.RUNNING
        self.started_at = time.time()

    def succeed(self, document_count: int | None = None) -> None:
        self.status = ModelStatus.SUCCEEDED
        self.document_count = document_count
        self.completed_at = time.time()

    def fail(self, error: BaseException | str) -> None:
        """Mark the model as failed with error detail."""
        self.status = ModelStatus.FAILED
        self.completed_at = time.time()
        if isinstance(error, BaseException):
            self.error = error
            self.error_type = type(error).__name__
            self.error_message = str(error) or type(error).__name__
        else:
            self.error_type = "ExecutionError"
            self.error_message = error

    def skip(self, reason: SkipReason, failed_dependencies: Iterable[str] = ()) -> None:
        """Mark the model as skipped (never attempted)."""
        self.status = ModelStatus.SKIPPED
        self.skipped_reason = reason
        self.failed_dependencies = sorted(failed_dependencies)

    @property
    def duration(self) -> float | None:
        """Execution duration in seconds."""
        if self.started_at is not None and self.completed_at is not None:
            return self.completed_at - self.started_at
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model_name,
            "output": self.output,
            "materialization": self.materialization,
            "status": self.status.value,
            "attempts": self.attempts,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration": self.duration,
            "document_count": self.document_count,
            "error_type": self.error_type,
            "error": self.error_message,
            "skipped_reason": self.skipped_reason.value if self.skipped_reason else None,
            "failed_dependencies": list(self.failed_dependencies),
        }


@dataclass
class RunResult:
    """
    Result of one run.

    Created fresh by every ``run()`` call and never retained by the project.
    ``per_model`` is ordered by the execution plan.
    """

    per_model: dict[str, ModelRunStats] = field(default_factory=dict)
    started_at: float | None = None
    completed_at: float | None = None
    cancelled: bool = False

    def start(self) -> None:
        self.started_at = time.time()

    def complete(self) -> None:
        self.completed_at = time.time()

    @property
    def overall_status(self) -> RunStatus:
        """
        ``success`` only if every scheduled model succeeded; otherwise
        ``partial_failure`` when at least one model succeeded, else ``failure``.
        """
        statuses = [s.status for s in self.per_model.values()]
        if all(s == ModelStatus.SUCCEEDED for s in statuses):
            return RunStatus.SUCCESS
        if any(s == ModelStatus.SUCCEEDED for s in statuses):
            return RunStatus.PARTIAL_FAILURE
        return RunStatus.FAILURE

    @property
    def ok(self) -> bool:
        return self.overall_status == RunStatus.SUCCESS

    def _names(self, status: ModelStatus) -> list[str]:
        return [name for name, stats in self.per_model.items() if stats.status == status]

    @property
    def succeeded(self) -> list[str]:
        return self._names(ModelStatus.SUCCEEDED)

    @property
    def failed(self) -> list[str]:
        return self._names(ModelStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self._names(ModelStatus.SKIPPED)

    @property
    def duration(self) -> float | None:
        if self.started_at is not None and self.completed_at is not None:
            return self.completed_at - self.started_at
        return None

    def __getitem__(self, model_name: str) -> ModelRunStats:
        return self.per_model[model_name]

    def raise_for_status(self) -> "RunResult":
        """Raise RunFailedError unless every model succeeded."""
        if not self.ok:
            raise RunFailedError(self)
        return self

    def summary(self) -> dict[str, Any]:
        """Get run summary statistics."""
        return {
            "status": self.overall_status.value,
            "total": len(self.per_model),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "cancelled": self.cancelled,
            "duration": self.duration,
            "documents": sum(s.document_count or 0 for s in self.per_model.values()),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "models": {name: stats.to_dict() for name, stats in self.per_model.items()},
        }
