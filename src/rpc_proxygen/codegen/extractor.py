"""Extraction of request and event handler records from controller modules."""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rpc_proxygen.codegen.diagnostics import DiagnosticKind, Diagnostics, SourceLocation
from rpc_proxygen.codegen.naming import (
    EMIT_PREFIX,
    event_method_name,
    kebab_case,
    pascal_case,
    snake_case,
)
from rpc_proxygen.codegen.resolver import RoutingKeyResolver, UnresolvableKeyError, is_empty_value
from rpc_proxygen.codegen.symbols import ModuleIndex, ModuleScope, terminal_name
from rpc_proxygen.markers import HandlerKind

__all__ = [
    "ExtractionResult",
    "HandlerExtractor",
    "HandlerRecord",
    "NO_PAYLOAD",
    "ServiceModule",
]

logger = logging.getLogger(__name__)

NO_PAYLOAD = -1

_DECORATOR_KINDS = {
    "message_pattern": HandlerKind.REQUEST,
    "event_pattern": HandlerKind.EVENT,
}
_PAYLOAD_MARKERS = frozenset({"Payload", "Body"})
_BOUND_FIRST_PARAMS = frozenset({"self", "cls"})


@dataclass(frozen=True, slots=True)
class ServiceModule:
    """One service: its main module and the controller files found beside it."""

    basename: str
    module_path: Path
    handler_files: tuple[Path, ...] = ()

    @property
    def service_name(self) -> str:
        return pascal_case(self.basename)

    @property
    def kebab_name(self) -> str:
        return kebab_case(self.service_name)

    @property
    def key(self) -> str:
        """Key of this service in the routing-key map."""
        return snake_case(self.basename)


@dataclass(frozen=True, slots=True)
class HandlerRecord:
    file_path: Path
    class_name: str
    method_name: str
    pattern_source: str
    pattern: Any
    payload_index: int
    service_name: str
    kind: HandlerKind
    location: SourceLocation
    event_name: str | None = None
    imported_class_name: str | None = None
    """Original class name when ``class_name`` is an import alias."""

    @property
    def is_event(self) -> bool:
        return self.kind == HandlerKind.EVENT

    @property
    def has_payload(self) -> bool:
        return self.payload_index != NO_PAYLOAD

    @property
    def client_method_name(self) -> str:
        if self.is_event and self.event_name is not None:
            return event_method_name(self.event_name)
        return self.method_name


@dataclass(slots=True)
class ExtractionResult:
    records: list[HandlerRecord] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


def _pattern_decorator(method: ast.FunctionDef | ast.AsyncFunctionDef) -> tuple[ast.Call, HandlerKind] | None:
    for decorator in method.decorator_list:
        if not isinstance(decorator, ast.Call):
            continue
        kind = _DECORATOR_KINDS.get(terminal_name(decorator.func) or "")
        if kind is not None:
            return decorator, kind
    return None


def _is_payload_annotation(annotation: ast.expr | None) -> bool:
    if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
        try:
            annotation = ast.parse(annotation.value, mode="eval").body
        except SyntaxError:
            return False
    if not (isinstance(annotation, ast.Subscript) and terminal_name(annotation.value) == "Annotated"):
        return False
    if not isinstance(annotation.slice, ast.Tuple):
        return False
    for meta in annotation.slice.elts[1:]:
        target = meta.func if isinstance(meta, ast.Call) else meta
        if terminal_name(target) in _PAYLOAD_MARKERS:
            return True
    return False


def payload_index(method: ast.FunctionDef | ast.AsyncFunctionDef) -> int:
    """Index of the payload parameter, 0 by default, ``NO_PAYLOAD`` without parameters."""
    params = [*method.args.posonlyargs, *method.args.args]
    is_static = any(terminal_name(d) == "staticmethod" for d in method.decorator_list)
    if params and not is_static and params[0].arg in _BOUND_FIRST_PARAMS:
        params = params[1:]
    for index, param in enumerate(params):
        if _is_payload_annotation(param.annotation):
            return index
    return 0 if params else NO_PAYLOAD


class HandlerExtractor:
    """Finds ``@message_pattern`` / ``@event_pattern`` methods of exported controller classes."""

    def __init__(self, index: ModuleIndex, resolver: RoutingKeyResolver | None = None) -> None:
        self._index = index
        self._resolver = resolver or RoutingKeyResolver(index)

    def extract(self, service: ServiceModule) -> ExtractionResult:
        result = ExtractionResult()
        event_pattern = re.compile(rf"{re.escape(service.kebab_name)}\.(?P<name>[\w-]+)")
        for path in service.handler_files:
            try:
                scope = self._index.scope_for_path(path)
            except SyntaxError as exc:
                result.diagnostics.report(
                    DiagnosticKind.EXTRACTION,
                    f'Couldn\'t parse controller "{path}:{exc.lineno or 0}:{exc.offset or 0}": {exc.msg}',
                    SourceLocation(path=path, line=exc.lineno or 0, column=exc.offset or 0),
                )
                continue
            for class_node in self._exported_classes(scope):
                for method in class_node.body:
                    if not isinstance(method, ast.FunctionDef | ast.AsyncFunctionDef):
                        continue
                    record = self._extract_method(service, scope, class_node, method, event_pattern, result.diagnostics)
                    if record is not None:
                        result.records.append(record)
        logger.debug("Found %d handlers in service %s", len(result.records), service.service_name)
        return result

    @staticmethod
    def _exported_classes(scope: ModuleScope) -> list[ast.ClassDef]:
        exported = scope.exported_names()
        classes = []
        for node in scope.module.tree.body:
            if not isinstance(node, ast.ClassDef) or node.name.startswith("_"):
                continue
            if exported is not None and node.name not in exported:
                continue
            classes.append(node)
        return classes

    def _extract_method(
        self,
        service: ServiceModule,
        scope: ModuleScope,
        class_node: ast.ClassDef,
        method: ast.FunctionDef | ast.AsyncFunctionDef,
        event_pattern: re.Pattern[str],
        diagnostics: Diagnostics,
    ) -> HandlerRecord | None:
        found = _pattern_decorator(method)
        if found is None:
            return None
        decorator, kind = found
        is_event = kind == HandlerKind.EVENT
        method_name = method.name
        method_location = SourceLocation.of(scope.path, method)
        pattern_expr = decorator.args[0] if decorator.args else None
        pattern_location = SourceLocation.of(scope.path, pattern_expr if pattern_expr is not None else decorator)

        if pattern_expr is None:
            diagnostics.report(
                DiagnosticKind.EXTRACTION,
                f'Couldn\'t extract pattern expression for "{method_name}" in "{pattern_location}": '
                "the decorator has no pattern argument.",
                pattern_location,
            )
            return None

        if is_event and not self._resolver.is_string_like(pattern_expr, scope):
            diagnostics.report(
                DiagnosticKind.EXTRACTION,
                "Pattern expression for event handlers should be recognizable as string: "
                f'method "{method_name}" in "{pattern_location}".',
                pattern_location,
            )
            return None

        if not is_event and method_name.startswith(EMIT_PREFIX):
            name_location = SourceLocation(
                path=scope.path,
                line=method.lineno,
                column=method.col_offset + 1 + len("async def " if isinstance(method, ast.AsyncFunctionDef) else "def "),
            )
            diagnostics.report(
                DiagnosticKind.EXTRACTION,
                f'Message handler name should not start with "{EMIT_PREFIX}": '
                f'method "{method_name}" in "{name_location}".',
                name_location,
            )
            return None

        try:
            resolved = self._resolver.resolve(pattern_expr, scope)
            if is_empty_value(resolved.value):
                raise UnresolvableKeyError("the pattern value is empty")
        except UnresolvableKeyError as exc:
            diagnostics.report(
                DiagnosticKind.EXTRACTION,
                f'Couldn\'t extract pattern expression for "{method_name}" in "{pattern_location}" ({exc}).\n'
                "    Try annotating the constant with Final or a Literal type, or use a literal expression.",
                pattern_location,
            )
            return None

        event_name = None
        if is_event:
            match = event_pattern.fullmatch(resolved.value) if isinstance(resolved.value, str) else None
            if match is None:
                diagnostics.report(
                    DiagnosticKind.EXTRACTION,
                    'Event handler pattern should be in the format "<service_name_in_kebabcase>.<event_name>": '
                    f'{resolved.source} in "{pattern_location}".',
                    pattern_location,
                )
                return None
            event_name = snake_case(match.group("name"))

        return HandlerRecord(
            file_path=scope.path,
            class_name=class_node.name,
            method_name=method_name,
            pattern_source=scope.source_of(pattern_expr),
            pattern=resolved.value,
            payload_index=payload_index(method),
            service_name=service.service_name,
            kind=kind,
            location=method_location,
            event_name=event_name,
        )
