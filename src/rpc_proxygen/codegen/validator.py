"""Uniqueness checks over extracted handler records."""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path

from rpc_proxygen.codegen.diagnostics import DiagnosticKind, Diagnostics
from rpc_proxygen.codegen.extractor import HandlerRecord, ServiceModule

__all__ = [
    "alias_duplicate_classes",
    "check_client_method_names",
    "check_method_names",
    "check_service_names",
    "validate_service",
]

_SEP = "\n    "


def check_service_names(services: Sequence[ServiceModule], diagnostics: Diagnostics) -> None:
    """Report services whose main modules share a basename."""
    groups: dict[str, list[ServiceModule]] = defaultdict(list)
    for service in services:
        groups[service.module_path.name].append(service)
    for group in groups.values():
        if len(group) < 2:
            continue
        paths = _SEP.join(str(service.module_path) for service in group)
        diagnostics.report(
            DiagnosticKind.UNIQUENESS,
            f"The following services are not named uniquely. Please rename them:{_SEP}{paths}",
        )


def check_method_names(
    service: ServiceModule,
    records: Sequence[HandlerRecord],
    diagnostics: Diagnostics,
) -> None:
    """Report handler methods that share a name anywhere within one service."""
    groups: dict[str, list[HandlerRecord]] = defaultdict(list)
    for record in records:
        groups[record.method_name].append(record)
    for method_name, group in groups.items():
        if len(group) < 2:
            continue
        lines = _SEP.join(f'"{method_name}" in "{record.location}"' for record in group)
        diagnostics.report(
            DiagnosticKind.UNIQUENESS,
            f'The following methods in service "{service.service_name}" are not named uniquely. '
            f"Please rename them:{_SEP}{lines}",
            *(record.location for record in group),
        )


def check_client_method_names(
    service: ServiceModule,
    records: Sequence[HandlerRecord],
    diagnostics: Diagnostics,
) -> None:
    """Report client methods that would dispatch to more than one routing key, and names the proxy reserves."""
    groups: dict[str, list[HandlerRecord]] = defaultdict(list)
    for record in records:
        groups[record.client_method_name].append(record)
    for method_name, group in groups.items():
        if method_name.startswith("_"):
            diagnostics.report(
                DiagnosticKind.UNIQUENESS,
                f'Client method names must not start with an underscore: "{method_name}" in "{group[0].location}".',
                *(record.location for record in group),
            )
        # request handlers sharing a name are already reported by check_method_names
        if not any(record.is_event for record in group):
            continue
        values: list[object] = []
        for record in group:
            if record.pattern not in values:
                values.append(record.pattern)
        if len(values) < 2:
            continue
        lines = _SEP.join(f'{record.pattern_source} on "{record.method_name}" in "{record.location}"' for record in group)
        diagnostics.report(
            DiagnosticKind.UNIQUENESS,
            f'The following handlers of service "{service.service_name}" map to the client method "{method_name}" '
            f"with different routing keys. Please rename them:{_SEP}{lines}",
            *(record.location for record in group),
        )


def alias_duplicate_classes(service: ServiceModule, records: Sequence[HandlerRecord]) -> list[HandlerRecord]:
    """Alias classes declared under the same name in several files as ``<ServiceName><ClassName>``."""
    files_by_class: dict[str, set[Path]] = defaultdict(set)
    for record in records:
        files_by_class[record.class_name].add(record.file_path)
    duplicated = {name for name, files in files_by_class.items() if len(files) > 1}
    if not duplicated:
        return list(records)
    return [
        dataclasses.replace(
            record,
            class_name=f"{service.service_name}{record.class_name}",
            imported_class_name=record.class_name,
        )
        if record.class_name in duplicated
        else record
        for record in records
    ]


def validate_service(
    service: ServiceModule,
    records: Sequence[HandlerRecord],
    diagnostics: Diagnostics,
) -> list[HandlerRecord]:
    check_method_names(service, records, diagnostics)
    check_client_method_names(service, records, diagnostics)
    return alias_duplicate_classes(service, records)
