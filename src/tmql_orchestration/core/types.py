"""
Type definitions for tmql-orchestration.

Provides type aliases shared across the graph, scheduling and execution layers.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal, TypeAlias, Union

if TYPE_CHECKING:
    from tmql_orchestration.core.model import Model
    from tmql_orchestration.core.source import Collection

#: One aggregation stage, e.g. ``{"$match": {...}}``
Stage: TypeAlias = Mapping[str, Any]

#: A raw aggregation stage sequence
Stages: TypeAlias = Sequence[Stage]

#: Anything that can be read from: a base collection or another model's output
Source: TypeAlias = Union["Collection", "Model"]

#: A source given either as an object or by name
SourceLike: TypeAlias = Union["Collection", "Model", str]

#: Materialization mode names
ModeName = Literal["replace", "upsert", "append"]

#: Failure policy names accepted in config files
FailurePolicyName = Literal["fail_fast", "continue_on_error"]

#: Halt scope names accepted in config files
HaltScopeName = Literal["all", "downstream"]
