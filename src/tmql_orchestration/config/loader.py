"""
Configuration file loading.

A project directory may hold ``config.yaml`` plus an optional
``config.{env}.yaml`` overlay that is merged over it recursively.
"""

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml

from tmql_orchestration.config.resolver import resolve_config
from tmql_orchestration.exceptions import ConfigurationError

CONFIG_FILE = "config.yaml"

# Top-level sections that must be mappings when present
_SECTIONS = ("executor", "logging")


class Config:
    """Project configuration container with dict-like access."""

    def __init__(self, data: Mapping[str, Any] | None = None):
        self.data: dict[str, Any] = dict(data or {})
        self.executor: dict[str, Any] = self.data.get("executor") or {}
        self.logging: dict[str, Any] = self.data.get("logging") or {}

    @property
    def name(self) -> str | None:
        return self.data.get("name")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation, e.g. ``executor.max_workers``."""
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or value.get(k) is None:
                return default
            value = value[k]
        return value

    def __getitem__(self, key: str) -> Any:
        if "." in key:
            value = self.get(key, _MISSING)
            if value is _MISSING:
                raise KeyError(f"Config key '{key}' not found")
            return value
        if key not in self.data:
            raise KeyError(f"Config key '{key}' not found")
        value = self.data[key]
        # Nested sections come back as Config for chaining
        return Config(value) if isinstance(value, dict) else value

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str) and "." in key:
            return self.get(key, _MISSING) is not _MISSING
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __repr__(self) -> str:
        return f"Config({self.data!r})"

    def keys(self):
        return self.data.keys()

    def values(self):
        return self.data.values()

    def items(self):
        return self.data.items()

    def validate(self) -> None:
        """
        Validate configuration structure.

        Raises:
            ConfigurationError: If a known section is not a mapping
        """
        errors = []
        for section in _SECTIONS:
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"Configuration '{section}' must be a mapping, got {type(value).__name__}")
        if errors:
            raise ConfigurationError("\n".join(errors))


_MISSING = object()


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigurationError(
            f"Error parsing {path.name}{where}: {e}\n"
            f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes",
            details={"file": str(path)},
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", details={"file": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a mapping, got {type(data).__name__}", details={"file": str(path)}
        )
    return data


def load_config(project_path: Path | None = None, env: str | None = None, *, required: bool = False) -> Config:
    """
    Load project configuration.

    Args:
        project_path: Directory holding ``config.yaml`` (default: current directory)
        env: Environment name; selects the ``config.{env}.yaml`` overlay
        required: Raise if ``config.yaml`` does not exist (otherwise an empty
            Config is returned)

    Returns:
        Config instance with merged and resolved configuration

    Raises:
        ConfigurationError: If a file is missing (when required), unreadable or invalid
    """
    project_path = Path(project_path) if project_path is not None else Path.cwd()
    base_path = project_path / CONFIG_FILE

    if base_path.is_file():
        config_data = _read_yaml(base_path)
    elif required:
        raise ConfigurationError(
            f"Configuration file not found: {base_path}\n"
            f"  Suggestion: Create a {CONFIG_FILE} file in your project root"
        )
    else:
        config_data = {}

    if env:
        env_path = project_path / f"config.{env}.yaml"
        if env_path.is_file():
            _merge_dict(config_data, _read_yaml(env_path))

    config = Config(resolve_config(config_data, env or "dev"))
    config.validate()
    return config


def _merge_dict(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
