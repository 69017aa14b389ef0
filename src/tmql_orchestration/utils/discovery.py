"""
Project file discovery.

A project file is a plain Python module. It exposes either ``project`` (a
Project) or ``build_project(config)``; for ``run`` it also exposes ``engine``
or ``build_engine(config)``. A module exposing neither project form has its
module-level Model objects collected as targets.
"""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from tmql_orchestration.config import Config
from tmql_orchestration.core.model import Model
from tmql_orchestration.core.project import Project
from tmql_orchestration.exceptions import DiscoveryError, TmqlError
from tmql_orchestration.utils.logging import get_logger

logger = get_logger("tmql.discovery")


def load_project_module(path: str | Path) -> ModuleType:
    """
    Import a project file by path.

    The file's directory is put on ``sys.path`` for the duration of the import
    so the project can import its sibling modules.

    Raises:
        DiscoveryError: If the file does not exist or fails to import
    """
    path = Path(path).resolve()
    if not path.is_file():
        raise DiscoveryError(f"Project file not found: {path}", details={"file": str(path)})

    spec = importlib.util.spec_from_file_location(f"tmql_project_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise DiscoveryError(f"Cannot import project file: {path}", details={"file": str(path)})
    module = importlib.util.module_from_spec(spec)

    project_dir = str(path.parent)
    added = project_dir not in sys.path
    if added:
        sys.path.insert(0, project_dir)
    try:
        spec.loader.exec_module(module)
    except TmqlError:
        raise
    except Exception as e:
        raise DiscoveryError(f"Error loading {path.name}: {e}", details={"file": str(path)}) from e
    finally:
        if added:
            sys.path.remove(project_dir)

    logger.debug(f"Loaded project file {path}")
    return module


def _module_models(module: ModuleType) -> list[Model]:
    seen: set[int] = set()
    models = []
    for name in dir(module):
        obj = getattr(module, name)
        if isinstance(obj, Model) and id(obj) not in seen:
            seen.add(id(obj))
            models.append(obj)
    return models


def resolve_project(module: ModuleType, config: Config | None = None) -> Project:
    """
    Get the Project a project module defines.

    Raises:
        DiscoveryError: If the module defines no usable project
        ProjectValidationError: If the project fails validation
    """
    config = config or Config()
    if hasattr(module, "build_project"):
        project = module.build_project(config)
    elif hasattr(module, "project"):
        project = module.project
    else:
        models = _module_models(module)
        if not models:
            raise DiscoveryError(
                f"Project file {module.__name__} defines no 'project', 'build_project' or models"
            )
        logger.debug(f"Collected {len(models)} module-level model(s) as targets")
        return Project(models, config=config)

    if not isinstance(project, Project):
        raise DiscoveryError(f"'project' must be a Project, got {type(project).__name__}")
    return project


def resolve_engine(module: ModuleType, config: Config | None = None) -> Any:
    """
    Get the engine a project module defines.

    Raises:
        DiscoveryError: If the module defines neither ``engine`` nor ``build_engine``
    """
    if hasattr(module, "build_engine"):
        return module.build_engine(config or Config())
    if hasattr(module, "engine"):
        return module.engine
    raise DiscoveryError(f"Project file {module.__name__} defines no 'engine' or 'build_engine'")
