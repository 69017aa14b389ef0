"""
tmql-orchestration - dependency-aware orchestration of aggregation-pipeline models.

Models read from collections or from other models' outputs, are discovered
from target models, validated, scheduled and executed through an injected
engine.
"""

__version__ = "0.1.0"

# Config
from tmql_orchestration.config import Config, load_config

# Core API
from tmql_orchestration.core.dependencies import DependencyGraph, GraphBuilder, build_dependency_graph
from tmql_orchestration.core.execution import (
    ExecutionEngine,
    ExecutionOutcome,
    ExecutionRequest,
    Executor,
    FailurePolicy,
    HaltScope,
    RunOptions,
    execute_plan,
)
from tmql_orchestration.core.materialization import MaterializationConfig, MaterializationMode
from tmql_orchestration.core.model import Model, model
from tmql_orchestration.core.project import Project
from tmql_orchestration.core.registry import SourceRegistry
from tmql_orchestration.core.results import ModelRunStats, ModelStatus, RunResult, RunStatus, SkipReason
from tmql_orchestration.core.scheduler import ExecutionPlan, compute_batches, schedule
from tmql_orchestration.core.source import Collection, SourceType
from tmql_orchestration.core.validation import ErrorKind, ValidationIssue, ValidationResult, Validator, WarningKind

# Exceptions
from tmql_orchestration.exceptions import (
    ConfigurationError,
    DiscoveryError,
    ExecutionError,
    MaterializationError,
    ModelExecutionError,
    ModelTimeoutError,
    ProjectError,
    ProjectValidationError,
    RunFailedError,
    SchedulingError,
    TmqlError,
    WriteConflictError,
)

# Logging utilities
from tmql_orchestration.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Declarations
    "Collection",
    "Model",
    "model",
    "MaterializationConfig",
    "MaterializationMode",
    "SourceType",
    # Project
    "Project",
    "SourceRegistry",
    "GraphBuilder",
    "DependencyGraph",
    "build_dependency_graph",
    "Validator",
    "ValidationResult",
    "ValidationIssue",
    "ErrorKind",
    "WarningKind",
    "ExecutionPlan",
    "schedule",
    "compute_batches",
    # Execution
    "Executor",
    "execute_plan",
    "ExecutionEngine",
    "ExecutionRequest",
    "ExecutionOutcome",
    "RunOptions",
    "FailurePolicy",
    "HaltScope",
    "RunResult",
    "RunStatus",
    "ModelRunStats",
    "ModelStatus",
    "SkipReason",
    # Config
    "Config",
    "load_config",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    # Exceptions
    "TmqlError",
    "ConfigurationError",
    "DiscoveryError",
    "ProjectError",
    "ProjectValidationError",
    "SchedulingError",
    "ExecutionError",
    "ModelExecutionError",
    "ModelTimeoutError",
    "RunFailedError",
    "MaterializationError",
    "WriteConflictError",
    "__version__",
]
