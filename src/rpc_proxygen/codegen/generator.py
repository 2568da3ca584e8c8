"""Rendering of per-service proxy interfaces and the global routing-key map."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

from rpc_proxygen.client.routing_keys import ROUTING_KEYS_NAME
from rpc_proxygen.codegen.extractor import HandlerRecord, ServiceModule

__all__ = [
    "GENERATED_HEADER",
    "ROUTING_KEYS_NAME",
    "interface_path",
    "render_routing_keys",
    "render_service_interface",
    "routing_key_entries",
]

GENERATED_HEADER = "# Code generated by rpc-proxygen. DO NOT EDIT."
_SIGNATURES_MODULE = "rpc_proxygen.client.signatures"


def interface_path(service: ServiceModule) -> Path:
    return service.module_path.parent / f"{service.key}_proxy_generated.py"


def _import_path(workspace_root: Path, file_path: Path) -> str:
    try:
        relative = file_path.resolve().relative_to(workspace_root.resolve())
    except ValueError:
        relative = Path(file_path.name)
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def _import_lines(workspace_root: Path, records: Sequence[HandlerRecord]) -> list[str]:
    classes_by_file: dict[Path, list[str]] = {}
    for record in records:
        if record.imported_class_name is not None:
            name = f"{record.imported_class_name} as {record.class_name}"
        else:
            name = record.class_name
        names = classes_by_file.setdefault(record.file_path, [])
        if name not in names:
            names.append(name)
    return [
        f"    from {_import_path(workspace_root, path)} import {', '.join(names)}"
        for path, names in classes_by_file.items()
    ]


def _bound(kind: str, record: HandlerRecord) -> str:
    return f'{kind}[{record.class_name}, Literal["{record.method_name}"], Literal[{record.payload_index}]]'


def _request_members(records: Sequence[HandlerRecord]) -> list[str]:
    return [f"    {record.method_name}: {_bound('ProxyMethod', record)}" for record in records]


def _event_members(records: Sequence[HandlerRecord]) -> list[str]:
    by_method: dict[str, list[HandlerRecord]] = {}
    for record in records:
        by_method.setdefault(record.client_method_name, []).append(record)
    members = []
    for method_name, group in by_method.items():
        # every consumer's payload type must be satisfied by the emitter
        payloads = [_bound("PayloadOf", record) for record in group if record.has_payload]
        args = ", ".join(payloads) if payloads else "()"
        members.append(f"    {method_name}: ProxyEvent[{args}]")
    return members


def render_service_interface(
    workspace_root: Path,
    service: ServiceModule,
    records: Sequence[HandlerRecord],
) -> str:
    """Source of the ``<ServiceName>Proxy`` protocol module for one service."""
    requests = [record for record in records if not record.is_event]
    events = [record for record in records if record.is_event]
    lines = [
        GENERATED_HEADER,
        "from __future__ import annotations",
        "",
        "from typing import TYPE_CHECKING, Literal, Protocol",
        "",
        f"from {_SIGNATURES_MODULE} import PayloadOf, ProxyEvent, ProxyMethod",
        "",
        "if TYPE_CHECKING:",
        *_import_lines(workspace_root, records),
        "",
        "",
        f"class {service.service_name}Proxy(Protocol):",
        *_request_members(requests),
        *_event_members(events),
    ]
    return "\n".join(lines) + "\n"


def routing_key_entries(records: Sequence[HandlerRecord]) -> dict[str, tuple[object, bool]]:
    """Client method name -> (routing-key value, has_payload) for one service."""
    entries: dict[str, tuple[object, bool]] = {}
    for record in records:
        name = record.client_method_name
        has_payload = record.has_payload
        if name in entries:
            has_payload = has_payload or entries[name][1]
        entries[name] = (record.pattern, has_payload)
    return entries


def render_routing_keys(records_by_service: Mapping[str, Sequence[HandlerRecord]]) -> str:
    """Source of the routing-key map module: one literal assignment, no executable code."""
    lines = [
        GENERATED_HEADER,
        "",
        f"{ROUTING_KEYS_NAME} = {{",
    ]
    for service_key, records in records_by_service.items():
        lines.append(f"    {service_key!r}: {{")
        for method_name, (value, has_payload) in routing_key_entries(records).items():
            lines.append(f"        {method_name!r}: ({value!r}, {has_payload!r}),")
        lines.append("    },")
    lines.append("}")
    return "\n".join(lines) + "\n"
