from __future__ import annotations

from pathlib import Path

import pytest

from rpc_proxygen.config import (
    ConfigError,
    GeneratorConfig,
    ProxyConfig,
    ProxygenConfig,
    WORKSPACE_ROOT_ENV,
    load_config,
    load_workspace_config,
    resolve_workspace_root,
)
from rpc_proxygen.resilience import RetryPolicy, RetryStrategy


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def test_defaults_match_connection_supervision_contract() -> None:
    config = ProxygenConfig()

    assert config.generator.service_module_globs == ["apps/*/*_module.py"]
    assert config.generator.controller_patterns == ["controller.py", "*_controller.py"]
    assert config.generator.output_dir == "generated"
    assert config.client.connect_timeout_ms == 2000
    assert config.client.connect_retries == 5
    assert config.client.retry_delay_ms == 3000
    assert config.client.retry_strategy == RetryStrategy.FIXED
    assert config.client.call_timeout_ms == 5000


def test_retry_policy_counts_initial_attempt() -> None:
    policy = ProxyConfig().retry_policy()

    assert policy.max_attempts == 6
    assert policy.strategy == RetryStrategy.FIXED
    assert policy.initial_delay_ms == 3000
    assert policy.max_delay_ms is None
    assert policy == RetryPolicy()


def test_load_yaml_with_env_expansion(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RPC_CALL_TIMEOUT", "750")
    monkeypatch.delenv("RPC_RETRIES", raising=False)
    path = _write(
        tmp_path / "rpc_proxygen.yaml",
        """
generator:
  service_module_globs: "apps/*/*_module.py, libs/*/*_module.py"
  output_dir: src/generated
client:
  call_timeout_ms: ${RPC_CALL_TIMEOUT}
  connect_retries: ${RPC_RETRIES:-2}
  retry_strategy: exponential
""",
    )

    config = load_config(path)

    assert config.generator.service_module_globs == ["apps/*/*_module.py", "libs/*/*_module.py"]
    assert config.generator.output_dir == "src/generated"
    assert config.client.call_timeout_ms == 750
    assert config.client.connect_retries == 2
    assert config.client.retry_strategy == RetryStrategy.EXPONENTIAL
    assert config.client.connect_timeout_ms == 2000


def test_nested_root_section(tmp_path: Path) -> None:
    path = _write(tmp_path / "config.yml", "rpc_proxygen:\n  generator:\n    output_dir: out\n")

    assert load_config(path).generator.output_dir == "out"


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("client:\n  call_timeout_ms: 0\n", "call_timeout_ms must be > 0"),
        ("client:\n  connect_retries: -1\n", "connect_retries must be >= 0"),
        ("client:\n  retry_strategy: random\n", "retry_strategy"),
        ("generator:\n  controller_patterns: []\n", "controller_patterns must not be empty"),
        ("client: [1, 2]\n", "client must be a mapping"),
        ("client:\n  call_timeout_ms: ${MISSING_RPC_VAR}\n", "MISSING_RPC_VAR"),
        ("- just\n- a list\n", "must parse to a mapping"),
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, content: str, message: str) -> None:
    path = _write(tmp_path / "rpc_proxygen.yaml", content)

    with pytest.raises(ConfigError, match=message):
        load_config(path)


def test_unsupported_extension(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unsupported config file type"):
        load_config(_write(tmp_path / "config.json", "{}"))


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_workspace_config_defaults_without_file(tmp_path: Path) -> None:
    assert load_workspace_config(tmp_path) == ProxygenConfig()


def test_workspace_config_picks_up_default_file(tmp_path: Path) -> None:
    _write(tmp_path / "rpc_proxygen.yml", "generator:\n  output_dir: keys\n")

    assert load_workspace_config(tmp_path).generator == GeneratorConfig(output_dir="keys")


def test_workspace_root_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    explicit = tmp_path / "explicit"
    explicit.mkdir()
    from_env = tmp_path / "env"
    from_env.mkdir()

    monkeypatch.setenv(WORKSPACE_ROOT_ENV, str(from_env))
    assert resolve_workspace_root(explicit) == explicit.resolve()
    assert resolve_workspace_root() == from_env.resolve()

    monkeypatch.delenv(WORKSPACE_ROOT_ENV)
    monkeypatch.chdir(explicit)
    assert resolve_workspace_root() == explicit.resolve()

    with pytest.raises(ConfigError, match="not a directory"):
        resolve_workspace_root(tmp_path / "missing")
