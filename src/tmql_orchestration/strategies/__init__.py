"""
Materialization strategies.

One strategy per materialization mode (replace, upsert, append).
"""

from tmql_orchestration.core.materialization import MaterializationConfig, MaterializationMode
from tmql_orchestration.strategies.append import AppendStrategy
from tmql_orchestration.strategies.base import Strategy
from tmql_orchestration.strategies.replace import ReplaceStrategy
from tmql_orchestration.strategies.upsert import UpsertStrategy

__all__ = [
    "Strategy",
    "ReplaceStrategy",
    "UpsertStrategy",
    "AppendStrategy",
    "STRATEGIES",
    "get_strategy",
    "write_stage_for",
]

# Strategy registry
STRATEGIES: dict[MaterializationMode, type[Strategy]] = {
    MaterializationMode.REPLACE: ReplaceStrategy,
    MaterializationMode.UPSERT: UpsertStrategy,
    MaterializationMode.APPEND: AppendStrategy,
}


def get_strategy(mode: MaterializationMode | str) -> Strategy:
    """Get the strategy for a materialization mode."""
    try:
        return STRATEGIES[MaterializationMode(mode)]()
    except ValueError:
        raise ValueError(f"Unknown materialization mode: {mode}") from None


def write_stage_for(output: str, config: MaterializationConfig) -> dict:
    """Terminal write stage for *output* under *config*."""
    return get_strategy(config.mode).write_stage(output, config)
