"""
Configuration resolution and environment variable substitution.

Supports ``${VAR}``, ``${VAR:-default}`` and the ``{env}`` placeholder.
Unset variables without a default are left untouched.
"""

import os
import re
from typing import Any

_ENV_VAR = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve configuration with environment variable substitution.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        Resolved configuration (a new dictionary)
    """
    return _resolve_value(config_data, env)


def _substitute(match: re.Match) -> str:
    name, default = match.group(1), match.group(2)
    value = os.getenv(name)
    if value is not None:
        return value
    return default if default is not None else match.group(0)


def _resolve_value(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    if isinstance(value, str):
        return _ENV_VAR.sub(_substitute, value).replace("{env}", env)
    return value
