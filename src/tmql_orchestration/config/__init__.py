"""Project configuration loading."""

from tmql_orchestration.config.loader import Config, load_config
from tmql_orchestration.config.resolver import resolve_config

__all__ = ["Config", "load_config", "resolve_config"]
