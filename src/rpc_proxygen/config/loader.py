from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import ProxygenConfig

__all__ = [
    "CONFIG_FILE_NAMES",
    "ConfigError",
    "WORKSPACE_ROOT_ENV",
    "get_default_config_path",
    "load_config",
    "load_workspace_config",
    "resolve_workspace_root",
]

WORKSPACE_ROOT_ENV = "WORKSPACE_ROOT"
CONFIG_FILE_NAMES = ("rpc_proxygen.yaml", "rpc_proxygen.yml")


class ConfigError(RuntimeError):
    """Raised when configuration loading fails."""


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")


def resolve_workspace_root(root: str | Path | None = None) -> Path:
    """Explicit root, else ``$WORKSPACE_ROOT``, else the current directory."""
    if root:
        candidate = Path(root).expanduser()
    else:
        env_root = os.getenv(WORKSPACE_ROOT_ENV)
        candidate = Path(env_root).expanduser() if env_root else Path.cwd()
    if not candidate.is_dir():
        raise ConfigError(f"Workspace root is not a directory: {candidate}")
    return candidate.resolve()


def get_default_config_path(workspace_root: Path) -> Path | None:
    """Return the first config file present in the workspace root."""
    for name in CONFIG_FILE_NAMES:
        candidate = workspace_root / name
        if candidate.is_file():
            return candidate
    return None


def load_workspace_config(workspace_root: Path, path: str | Path | None = None) -> ProxygenConfig:
    """Load ``path`` or the workspace's default config file; defaults when neither exists."""
    if path:
        return load_config(path)
    default_path = get_default_config_path(workspace_root)
    if default_path is None:
        return ProxygenConfig()
    return load_config(default_path)


def load_config(path: str | Path) -> ProxygenConfig:
    """Load a YAML config file into ProxygenConfig."""
    data = _load_config_mapping(path)
    try:
        return ProxygenConfig.from_dict(data)
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config in {path}: {exc}") from exc


def _load_config_mapping(path: str | Path) -> dict[str, Any]:
    config_path = Path(path).expanduser()
    _ensure_yaml_path(config_path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        content = config_path.read_text(encoding="utf-8")
        data = _parse_yaml_with_env(content)
    except ConfigError:
        raise
    except Exception as exc:
        raise ConfigError(f"Failed to load config file: {config_path}") from exc
    return _normalize_config_root(dict(data))


def _parse_yaml_with_env(content: str) -> Mapping[str, Any]:
    parsed = yaml.safe_load(content) or {}
    if not isinstance(parsed, Mapping):
        raise ConfigError("Config file must parse to a mapping")
    return _expand_env_in_data(parsed)


def _expand_env_in_data(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_env_value(value)
    if isinstance(value, Mapping):
        return {key: _expand_env_in_data(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_expand_env_in_data(item) for item in value]
    return value


def _expand_env_value(value: str) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        default = match.group(2)
        env_value = os.getenv(name)
        if env_value is None or env_value == "":
            if default is None:
                raise ConfigError(
                    f"Environment variable '{name}' is not set and no default provided"
                )
            return default
        return env_value

    return _ENV_PATTERN.sub(replace, value)


def _normalize_config_root(data: Mapping[str, Any]) -> dict[str, Any]:
    if "rpc_proxygen" not in data:
        return dict(data)
    nested = data["rpc_proxygen"]
    if not isinstance(nested, Mapping):
        raise ConfigError("rpc_proxygen section must be a mapping")
    merged = dict(nested)
    for key, value in data.items():
        if key == "rpc_proxygen":
            continue
        merged[key] = value
    return merged


def _ensure_yaml_path(path: Path) -> None:
    if path.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError(f"Unsupported config file type: {path.suffix}")
