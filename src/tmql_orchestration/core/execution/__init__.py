"""
Plan execution: run options, the engine interface and the executor.
"""

from tmql_orchestration.core.execution.config import FailurePolicy, HaltScope, RunOptions
from tmql_orchestration.core.execution.engine import (
    ExecutionEngine,
    ExecutionOutcome,
    ExecutionRequest,
    OutcomeStatus,
)
from tmql_orchestration.core.execution.executor import Executor, execute_plan

__all__ = [
    "ExecutionEngine",
    "ExecutionOutcome",
    "ExecutionRequest",
    "Executor",
    "FailurePolicy",
    "HaltScope",
    "OutcomeStatus",
    "RunOptions",
    "execute_plan",
]
