"""Locating service modules and their controller files inside a workspace."""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Sequence
from pathlib import Path

from rpc_proxygen.codegen.extractor import ServiceModule
from rpc_proxygen.config.models import GeneratorConfig

__all__ = ["MODULE_SUFFIX", "discover_services", "find_controllers", "is_service_module"]

logger = logging.getLogger(__name__)

MODULE_SUFFIX = "_module"


def is_service_module(path: Path) -> bool:
    """``apps/users/users_module.py`` is a service module, ``apps/users/other_module.py`` is not."""
    return path.suffix == ".py" and path.stem == f"{path.parent.name}{MODULE_SUFFIX}"


def find_controllers(service_dir: Path, patterns: Sequence[str]) -> tuple[Path, ...]:
    found = {
        path
        for path in service_dir.rglob("*.py")
        if path.is_file() and any(fnmatch.fnmatch(path.name, pattern) for pattern in patterns)
    }
    return tuple(sorted(found))


def discover_services(workspace_root: Path, config: GeneratorConfig | None = None) -> list[ServiceModule]:
    """Service modules matching the configured globs, sorted by path."""
    config = config or GeneratorConfig()
    module_paths: set[Path] = set()
    for pattern in config.service_module_globs:
        for path in workspace_root.glob(pattern):
            if path.is_file() and is_service_module(path):
                module_paths.add(path)
            elif path.is_file():
                logger.debug("Skipping %s: not named <dir>%s.py", path, MODULE_SUFFIX)
    services = []
    for module_path in sorted(module_paths):
        basename = module_path.stem.removesuffix(MODULE_SUFFIX)
        controllers = find_controllers(module_path.parent, config.controller_patterns)
        services.append(ServiceModule(basename=basename, module_path=module_path, handler_files=controllers))
    return services
