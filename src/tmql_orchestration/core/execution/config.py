"""
Run options for the executor.

Options are plain immutable values so one project can be run concurrently
with different settings.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import StrEnum
from typing import Any

from tmql_orchestration.exceptions import ConfigurationError


class FailurePolicy(StrEnum):
    """What happens after a model fails."""

    FAIL_FAST = "fail_fast"
    CONTINUE_ON_ERROR = "continue_on_error"


class HaltScope(StrEnum):
    """
    What fail-fast halts after the first failure.

    ``all`` stops dispatching every not-yet-started model; ``downstream`` only
    stops the failed model's transitive dependents.
    """

    ALL = "all"
    DOWNSTREAM = "downstream"


@dataclass(frozen=True)
class RunOptions:
    """
    Options for a single run.

    Attributes:
        failure_policy: fail_fast (default) or continue_on_error
        halt_scope: Scope of a fail-fast halt (default: all)
        max_workers: Maximum models executing at once
        model_timeout: Per-model time budget in seconds (None = unlimited)
        max_attempts: Engine invocations per model before it is marked failed
        retry_delay: Seconds to wait between attempts
        cancel_event: Set it to stop dispatching not-yet-started models
    """

    DEFAULT_MAX_WORKERS = 4

    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    halt_scope: HaltScope = HaltScope.ALL
    max_workers: int = DEFAULT_MAX_WORKERS
    model_timeout: float | None = None
    max_attempts: int = 1
    retry_delay: float = 0.0
    cancel_event: threading.Event | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "failure_policy", FailurePolicy(self.failure_policy))
            object.__setattr__(self, "halt_scope", HaltScope(self.halt_scope))
        except ValueError as e:
            raise ConfigurationError(f"Invalid run option: {e}") from e
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be a positive integer, got {self.max_workers!r}")
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be a positive integer, got {self.max_attempts!r}")
        if self.model_timeout is not None and self.model_timeout <= 0:
            raise ConfigurationError(f"model_timeout must be positive, got {self.model_timeout!r}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay must be >= 0, got {self.retry_delay!r}")

    @property
    def halts_everything(self) -> bool:
        """True if the first failure stops all further dispatch."""
        return self.failure_policy == FailurePolicy.FAIL_FAST and self.halt_scope == HaltScope.ALL

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def with_overrides(self, **overrides: Any) -> "RunOptions":
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None, **overrides: Any) -> "RunOptions":
        """
        Build options from the ``executor`` section of a project config.

        Args:
            config: Full config mapping (``executor`` section is read) or the
                executor section itself
            **overrides: Explicit values that win over the config
        """
        # Accept a loaded Config container as well as a plain mapping
        config = getattr(config, "data", config) or {}
        section = config.get("executor", config) if isinstance(config, Mapping) else {}
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"'executor' config must be a mapping, got {type(section).__name__}")

        known = {f.name for f in fields(cls)} - {"cancel_event"}
        unknown = sorted(set(section) - known)
        if unknown and "executor" in config:
            raise ConfigurationError(f"Unknown executor option(s): {', '.join(unknown)}")

        values = {k: v for k, v in section.items() if k in known and v is not None}
        return cls(**values).with_overrides(**overrides)
