"""Module-level symbol tables for statically parsed workspace modules."""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "ImportBinding",
    "ModuleIndex",
    "ModuleScope",
    "ParsedModule",
    "terminal_name",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportBinding:
    """A name bound by an import statement.

    ``name`` is None when the binding is the module itself (``import a.b as m``).
    """

    module: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class ParsedModule:
    path: Path
    name: str
    source: str
    tree: ast.Module

    @property
    def is_package(self) -> bool:
        return self.path.name == "__init__.py"


Binding = ast.stmt | ImportBinding


def terminal_name(node: ast.expr) -> str | None:
    """``Literal`` for both ``Literal`` and ``typing.Literal``."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


class ModuleScope:
    """Top-level bindings of one module, including those under ``if`` blocks."""

    def __init__(self, module: ParsedModule) -> None:
        self.module = module
        self._bindings: dict[str, Binding] = {}
        self._bind_block(module.tree.body)

    @property
    def path(self) -> Path:
        return self.module.path

    def lookup(self, name: str) -> Binding | None:
        return self._bindings.get(name)

    def source_of(self, node: ast.AST) -> str:
        segment = ast.get_source_segment(self.module.source, node)
        return segment if segment is not None else ast.unparse(node)

    def exported_names(self) -> set[str] | None:
        """Literal ``__all__`` entries, or None when the module does not declare one."""
        stmt = self._bindings.get("__all__")
        value = None
        if isinstance(stmt, ast.Assign | ast.AnnAssign):
            value = stmt.value
        if value is None:
            return None
        try:
            names = ast.literal_eval(value)
        except ValueError:
            return None
        if not isinstance(names, list | tuple):
            return None
        return {name for name in names if isinstance(name, str)}

    def _bind_block(self, body: list[ast.stmt]) -> None:
        for stmt in body:
            if isinstance(stmt, ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef):
                self._bindings[stmt.name] = stmt
            elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                self._bindings[stmt.target.id] = stmt
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        self._bindings[target.id] = stmt
            elif isinstance(stmt, ast.TypeAlias) and isinstance(stmt.name, ast.Name):
                self._bindings[stmt.name.id] = stmt
            elif isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    if alias.asname:
                        self._bindings[alias.asname] = ImportBinding(alias.name)
                    else:
                        head = alias.name.split(".", 1)[0]
                        self._bindings[head] = ImportBinding(head)
            elif isinstance(stmt, ast.ImportFrom):
                base = self._absolute_module(stmt.module, stmt.level)
                if base is None:
                    continue
                for alias in stmt.names:
                    if alias.name == "*":
                        continue
                    self._bindings[alias.asname or alias.name] = ImportBinding(base, alias.name)
            elif isinstance(stmt, ast.If | ast.Try):
                self._bind_block(stmt.body)
                self._bind_block(stmt.orelse)

    def _absolute_module(self, module: str | None, level: int) -> str | None:
        if level == 0:
            return module
        parts = self.module.name.split(".") if self.module.name else []
        if not self.module.is_package:
            parts = parts[:-1]
        if level - 1 > len(parts):
            return None
        if level > 1:
            parts = parts[: len(parts) - (level - 1)]
        if module:
            parts.append(module)
        return ".".join(parts)


class ModuleIndex:
    """Parses workspace modules on demand and caches their scopes."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._scopes: dict[Path, ModuleScope] = {}

    def module_name(self, path: Path) -> str:
        try:
            relative = path.resolve().relative_to(self.root.resolve())
        except ValueError:
            return path.stem
        parts = list(relative.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        return ".".join(parts)

    def scope_for_path(self, path: Path) -> ModuleScope:
        """Parse ``path``; ``SyntaxError`` propagates to the caller."""
        key = path.resolve()
        scope = self._scopes.get(key)
        if scope is None:
            source = path.read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(path))
            module = ParsedModule(path=path, name=self.module_name(path), source=source, tree=tree)
            scope = ModuleScope(module)
            self._scopes[key] = scope
        return scope

    def scope_for_module(self, dotted: str) -> ModuleScope | None:
        """Scope of a workspace module, or None for modules outside the workspace."""
        if not dotted:
            return None
        base = self.root.joinpath(*dotted.split("."))
        for candidate in (base.with_suffix(".py"), base / "__init__.py"):
            if candidate.is_file():
                try:
                    return self.scope_for_path(candidate)
                except SyntaxError:
                    logger.debug("Skipping unparsable module %s", candidate)
                    return None
        if base.is_dir():
            # namespace package: no bindings of its own, only submodules
            key = base.resolve()
            scope = self._scopes.get(key)
            if scope is None:
                module = ParsedModule(
                    path=base / "__init__.py",
                    name=dotted,
                    source="",
                    tree=ast.Module(body=[], type_ignores=[]),
                )
                scope = ModuleScope(module)
                self._scopes[key] = scope
            return scope
        return None
