"""Loading the generated routing-key map without importing or executing it."""

from __future__ import annotations

import ast
from collections.abc import Mapping
from pathlib import Path
from typing import Any, NamedTuple

from pydantic import TypeAdapter, ValidationError

from rpc_proxygen.exceptions import ProxygenError

__all__ = ["ROUTING_KEYS_NAME", "RoutingKey", "RoutingKeyMap", "load_routing_keys", "parse_routing_keys"]

ROUTING_KEYS_NAME = "ROUTING_KEYS"


class RoutingKey(NamedTuple):
    value: Any
    has_payload: bool


RoutingKeyMap = dict[str, dict[str, RoutingKey]]

_MAP_ADAPTER = TypeAdapter(dict[str, dict[str, tuple[Any, bool]]])


def parse_routing_keys(data: Mapping[str, Any]) -> RoutingKeyMap:
    """Validate a ``service -> method -> (value, has_payload)`` mapping."""
    try:
        validated = _MAP_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise ProxygenError(f"Malformed routing-key map: {exc}") from exc
    return {
        service: {method: RoutingKey(*entry) for method, entry in methods.items()}
        for service, methods in validated.items()
    }


def load_routing_keys(path: str | Path) -> RoutingKeyMap:
    """Read the ``ROUTING_KEYS = {...}`` literal from a generated file."""
    source_path = Path(path)
    try:
        tree = ast.parse(source_path.read_text(encoding="utf-8"), filename=str(source_path))
    except (OSError, SyntaxError) as exc:
        raise ProxygenError(f"Unable to read routing-key map {source_path}: {exc}") from exc
    for stmt in tree.body:
        if (
            isinstance(stmt, ast.Assign)
            and len(stmt.targets) == 1
            and isinstance(stmt.targets[0], ast.Name)
            and stmt.targets[0].id == ROUTING_KEYS_NAME
        ):
            try:
                data = ast.literal_eval(stmt.value)
            except ValueError as exc:
                raise ProxygenError(f"{ROUTING_KEYS_NAME} in {source_path} is not a literal") from exc
            if not isinstance(data, dict):
                raise ProxygenError(f"{ROUTING_KEYS_NAME} in {source_path} must be a dict")
            return parse_routing_keys(data)
    raise ProxygenError(f"{source_path} does not define {ROUTING_KEYS_NAME}")
