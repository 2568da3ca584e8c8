from rpc_proxygen.config.loader import (
    ConfigError,
    WORKSPACE_ROOT_ENV,
    get_default_config_path,
    load_config,
    load_workspace_config,
    resolve_workspace_root,
)
from rpc_proxygen.config.models import GeneratorConfig, ProxyConfig, ProxygenConfig

__all__ = [
    "ConfigError",
    "GeneratorConfig",
    "ProxyConfig",
    "ProxygenConfig",
    "WORKSPACE_ROOT_ENV",
    "get_default_config_path",
    "load_config",
    "load_workspace_config",
    "resolve_workspace_root",
]
