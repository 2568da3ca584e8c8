from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, cast

from rpc_proxygen.resilience.retry_policy import RetryPolicy, RetryStrategy

__all__ = ["GeneratorConfig", "ProxyConfig", "ProxygenConfig"]


def _ensure_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{field_name} must be a mapping")
    return cast(Mapping[str, Any], value)


def _coerce_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be an int")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"{field_name} must be an int")


def _coerce_str(value: Any, field_name: str) -> str:
    if isinstance(value, str):
        return value
    return str(value)


def _coerce_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Sequence):
        return [_coerce_str(item, field_name) for item in value]
    raise TypeError(f"{field_name} must be a list of strings")


def _coerce_strategy(value: Any, field_name: str) -> RetryStrategy:
    if isinstance(value, RetryStrategy):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in RetryStrategy:
            if member.value == normalized or member.name.lower() == normalized:
                return member
    raise ValueError(f"{field_name} must be a valid {RetryStrategy.__name__}")


_GENERATOR_FIELD_SPECS = (
    ("service_module_globs", _coerce_str_list, "generator.service_module_globs"),
    ("controller_patterns", _coerce_str_list, "generator.controller_patterns"),
    ("output_dir", _coerce_str, "generator.output_dir"),
)

_PROXY_FIELD_SPECS = (
    ("connect_timeout_ms", _coerce_int, "client.connect_timeout_ms"),
    ("connect_retries", _coerce_int, "client.connect_retries"),
    ("retry_delay_ms", _coerce_int, "client.retry_delay_ms"),
    ("retry_strategy", _coerce_strategy, "client.retry_strategy"),
    ("call_timeout_ms", _coerce_int, "client.call_timeout_ms"),
)


@dataclass
class GeneratorConfig:
    """Where services, controllers and generated files live, relative to the workspace root."""

    service_module_globs: list[str] = field(default_factory=lambda: ["apps/*/*_module.py"])
    controller_patterns: list[str] = field(default_factory=lambda: ["controller.py", "*_controller.py"])
    output_dir: str = "generated"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GeneratorConfig":
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        payload = _ensure_mapping(data, "generator")
        kwargs: dict[str, Any] = {}
        for name, coerce, label in _GENERATOR_FIELD_SPECS:
            if name in payload:
                kwargs[name] = coerce(payload[name], label)
        return cls(**kwargs)

    def __post_init__(self) -> None:
        for name, coerce, label in _GENERATOR_FIELD_SPECS:
            setattr(self, name, coerce(getattr(self, name), label))
        if not self.service_module_globs:
            raise ValueError("generator.service_module_globs must not be empty")
        if not self.controller_patterns:
            raise ValueError("generator.controller_patterns must not be empty")


@dataclass
class ProxyConfig:
    """Connection supervision and call defaults of client proxies."""

    connect_timeout_ms: int = 2000
    connect_retries: int = 5
    retry_delay_ms: int = 3000
    retry_strategy: RetryStrategy = RetryStrategy.FIXED
    call_timeout_ms: int = 5000

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ProxyConfig":
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        payload = _ensure_mapping(data, "client")
        kwargs: dict[str, Any] = {}
        for name, coerce, label in _PROXY_FIELD_SPECS:
            if name in payload:
                kwargs[name] = coerce(payload[name], label)
        return cls(**kwargs)

    def __post_init__(self) -> None:
        for name, coerce, label in _PROXY_FIELD_SPECS:
            setattr(self, name, coerce(getattr(self, name), label))
        if self.connect_timeout_ms <= 0:
            raise ValueError("client.connect_timeout_ms must be > 0")
        if self.call_timeout_ms <= 0:
            raise ValueError("client.call_timeout_ms must be > 0")
        if self.connect_retries < 0:
            raise ValueError("client.connect_retries must be >= 0")
        if self.retry_delay_ms < 0:
            raise ValueError("client.retry_delay_ms must be >= 0")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.connect_retries + 1,
            strategy=self.retry_strategy,
            initial_delay_ms=self.retry_delay_ms,
        )


@dataclass
class ProxygenConfig:
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    client: ProxyConfig = field(default_factory=ProxyConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ProxygenConfig":
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        payload = _ensure_mapping(data, "config")
        kwargs: dict[str, Any] = {}
        if "generator" in payload:
            kwargs["generator"] = GeneratorConfig.from_dict(payload["generator"])
        if "client" in payload:
            kwargs["client"] = ProxyConfig.from_dict(payload["client"])
        return cls(**kwargs)

    def __post_init__(self) -> None:
        if not isinstance(self.generator, GeneratorConfig):
            self.generator = GeneratorConfig.from_dict(self.generator)  # type: ignore[arg-type]
        if not isinstance(self.client, ProxyConfig):
            self.client = ProxyConfig.from_dict(self.client)  # type: ignore[arg-type]
