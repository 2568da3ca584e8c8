"""Routing-key value resolution.

A routing key is accepted when its value is known statically:

1. the decorator argument is a literal expression (``"orders.get"``,
   ``["orders", 1]``, ``{"cmd": "get"}``), or
2. it names a constant whose declared type has exactly one inhabitant:
   ``Final`` constants, ``Literal[...]`` annotations, fixed-length tuple
   types, TypedDict / dataclass shapes whose fields are themselves
   singleton types, and enum members.

Open types (``str``, ``int``), unions and variadic tuples fail. Nothing is
ever imported or evaluated beyond ``ast.literal_eval``.
"""

from __future__ import annotations

import ast
import builtins
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rpc_proxygen.codegen.symbols import ImportBinding, ModuleIndex, ModuleScope, terminal_name

__all__ = [
    "ResolvedKey",
    "RoutingKeyResolver",
    "UnresolvableKeyError",
    "is_empty_value",
    "is_literal_expression",
]

_MAX_DEPTH = 32

_ENUM_BASES = frozenset({"Enum", "StrEnum", "IntEnum", "Flag", "IntFlag", "ReprEnum"})
_STRING_ENUM_BASES = frozenset({"StrEnum", "str"})
_UNWRAP_FIRST = frozenset({"Final", "ClassVar", "Annotated", "Required", "NotRequired", "ReadOnly"})
_STRING_TYPES = frozenset({"str", "LiteralString"})
_TUPLE_TYPES = frozenset({"tuple", "Tuple"})
_UNION_TYPES = frozenset({"Union", "Optional"})


class UnresolvableKeyError(ValueError):
    """Raised when an expression does not denote exactly one literal value."""


@dataclass(frozen=True, slots=True)
class ResolvedKey:
    value: Any
    source: str
    """Literal source text, or the ``repr`` of a value collapsed from a type."""


@dataclass(frozen=True, slots=True)
class _ClassRef:
    node: ast.ClassDef
    scope: ModuleScope


def is_literal_expression(node: ast.expr) -> bool:
    if isinstance(node, ast.Constant):
        return node.value is not Ellipsis
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub | ast.UAdd):
        return isinstance(node.operand, ast.Constant) and isinstance(node.operand.value, int | float | complex)
    if isinstance(node, ast.List | ast.Tuple):
        return all(is_literal_expression(elt) for elt in node.elts)
    if isinstance(node, ast.Dict):
        return all(key is not None and is_literal_expression(key) for key in node.keys) and all(
            is_literal_expression(value) for value in node.values
        )
    return False


def is_empty_value(value: Any) -> bool:
    """Empty per the value's own type; ``0`` and ``False`` are concrete keys."""
    if value is None:
        return True
    if isinstance(value, str | bytes | tuple | list | Mapping):
        return len(value) == 0
    return False


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def _base_names(node: ast.ClassDef) -> set[str]:
    names: set[str] = set()
    for base in node.bases:
        target = base.value if isinstance(base, ast.Subscript) else base
        name = terminal_name(target)
        if name:
            names.add(name)
    return names


def _enum_members(node: ast.ClassDef) -> list[ast.Assign]:
    members = []
    for stmt in node.body:
        if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1:
            target = stmt.targets[0]
            if isinstance(target, ast.Name) and not target.id.startswith("_"):
                members.append(stmt)
    return members


def _class_member(node: ast.ClassDef, name: str) -> ast.stmt | None:
    for stmt in node.body:
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) and stmt.target.id == name:
            return stmt
        if isinstance(stmt, ast.Assign) and any(
            isinstance(target, ast.Name) and target.id == name for target in stmt.targets
        ):
            return stmt
    return None


class RoutingKeyResolver:
    """Resolves routing-key expressions of one workspace to literal values."""

    def __init__(self, index: ModuleIndex) -> None:
        self._index = index

    def resolve(self, expr: ast.expr, scope: ModuleScope) -> ResolvedKey:
        """Return the literal value of ``expr`` or raise ``UnresolvableKeyError``."""
        if is_literal_expression(expr):
            return ResolvedKey(value=ast.literal_eval(expr), source=scope.source_of(expr))
        value = self._value_of(expr, scope, 0)
        return ResolvedKey(value=value, source=repr(value))

    def is_string_like(self, expr: ast.expr, scope: ModuleScope) -> bool:
        """Whether the static type of ``expr`` is a string type."""
        return self._string_like(expr, scope, 0)

    # -- symbols -------------------------------------------------------

    def _symbol(self, expr: ast.expr, scope: ModuleScope, depth: int) -> tuple[Any, ModuleScope]:
        """Resolve a name or attribute chain to (binding, scope it lives in)."""
        self._check_depth(depth)
        if isinstance(expr, ast.Name):
            binding = scope.lookup(expr.id)
            if binding is None:
                raise UnresolvableKeyError(f"'{expr.id}' is not defined in {scope.path.name}")
            return self._follow(binding, scope, depth + 1)
        if isinstance(expr, ast.Attribute):
            base, base_scope = self._symbol(expr.value, scope, depth + 1)
            if isinstance(base, ModuleScope):
                binding = base.lookup(expr.attr)
                if binding is None:
                    # ``import pkg`` then ``pkg.sub.NAME``
                    sub = self._index.scope_for_module(f"{base.module.name}.{expr.attr}")
                    if sub is None:
                        raise UnresolvableKeyError(f"'{expr.attr}' is not defined in {base.path.name}")
                    return sub, sub
                return self._follow(binding, base, depth + 1)
            if isinstance(base, ast.ClassDef):
                member = _class_member(base, expr.attr)
                if member is None:
                    raise UnresolvableKeyError(f"'{base.name}' has no attribute '{expr.attr}'")
                return (_ClassRef(base, base_scope), member), base_scope
            raise UnresolvableKeyError(f"Can't look up '{expr.attr}' on '{ast.unparse(expr.value)}'")
        raise UnresolvableKeyError(f"Unsupported expression '{ast.unparse(expr)}'")

    def _follow(self, binding: Any, scope: ModuleScope, depth: int) -> tuple[Any, ModuleScope]:
        self._check_depth(depth)
        if not isinstance(binding, ImportBinding):
            return binding, scope
        if binding.name is None:
            target = self._index.scope_for_module(binding.module)
            if target is None:
                raise UnresolvableKeyError(f"Module '{binding.module}' is outside the workspace")
            return target, target
        target = self._index.scope_for_module(binding.module)
        if target is None:
            # Names from third-party modules (typing, enum, ...) stay symbolic.
            return binding, scope
        if target.lookup(binding.name) is None:
            submodule = self._index.scope_for_module(f"{binding.module}.{binding.name}")
            if submodule is not None:
                return submodule, submodule
        inner = target.lookup(binding.name)
        if inner is None:
            raise UnresolvableKeyError(f"'{binding.name}' is not defined in module '{binding.module}'")
        return self._follow(inner, target, depth + 1)

    @staticmethod
    def _check_depth(depth: int) -> None:
        if depth > _MAX_DEPTH:
            raise UnresolvableKeyError("Routing key definition is cyclic or nested too deeply")

    # -- values --------------------------------------------------------

    def _value_of(self, expr: ast.expr, scope: ModuleScope, depth: int) -> Any:
        self._check_depth(depth)
        if is_literal_expression(expr):
            return ast.literal_eval(expr)
        if not isinstance(expr, ast.Name | ast.Attribute):
            raise UnresolvableKeyError(f"Can't extract a value from '{ast.unparse(expr)}'")
        symbol, owner = self._symbol(expr, scope, depth + 1)
        if isinstance(symbol, tuple):
            class_ref, member = symbol
            return self._class_member_value(class_ref, member, depth + 1)
        if isinstance(symbol, ast.AnnAssign):
            return self._declared_value(symbol.annotation, symbol.value, owner, depth + 1)
        if isinstance(symbol, ast.Assign):
            raise UnresolvableKeyError(
                f"'{ast.unparse(expr)}' is not declared with a single-valued type"
            )
        if isinstance(symbol, ast.ClassDef | ast.TypeAlias):
            raise UnresolvableKeyError(f"'{ast.unparse(expr)}' is a type, not a value")
        raise UnresolvableKeyError(f"Can't extract a value from '{ast.unparse(expr)}'")

    def _class_member_value(self, class_ref: _ClassRef, member: ast.stmt, depth: int) -> Any:
        if _base_names(class_ref.node) & _ENUM_BASES:
            if isinstance(member, ast.Assign) and is_literal_expression(member.value):
                return ast.literal_eval(member.value)
            raise UnresolvableKeyError(f"Enum member of '{class_ref.node.name}' has no literal value")
        if isinstance(member, ast.AnnAssign):
            return self._declared_value(member.annotation, member.value, class_ref.scope, depth + 1)
        raise UnresolvableKeyError(
            f"Attribute of '{class_ref.node.name}' is not declared with a single-valued type"
        )

    def _declared_value(
        self,
        annotation: ast.expr,
        value: ast.expr | None,
        scope: ModuleScope,
        depth: int,
    ) -> Any:
        self._check_depth(depth)
        if terminal_name(annotation) == "Final":
            # A bare Final narrows to the assigned value's own type.
            if value is None:
                raise UnresolvableKeyError("Final constant has no value")
            return self._value_of(value, scope, depth + 1)
        return self._collapse(annotation, scope, depth + 1)

    # -- types ---------------------------------------------------------

    def _collapse(self, node: ast.expr, scope: ModuleScope, depth: int) -> Any:
        """The single inhabitant of the type ``node``."""
        self._check_depth(depth)
        if isinstance(node, ast.Constant):
            if node.value is None:
                return None
            if isinstance(node.value, str):
                try:
                    forward = ast.parse(node.value, mode="eval").body
                except SyntaxError as exc:
                    raise UnresolvableKeyError(f"Invalid forward reference {node.value!r}") from exc
                return self._collapse(forward, scope, depth + 1)
            raise UnresolvableKeyError(f"'{ast.unparse(node)}' is not a type")
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            raise UnresolvableKeyError(f"Union type '{ast.unparse(node)}' has more than one value")
        if isinstance(node, ast.Subscript):
            return self._collapse_generic(node, scope, depth + 1)
        if isinstance(node, ast.Name) and scope.lookup(node.id) is None and hasattr(builtins, node.id):
            raise UnresolvableKeyError(f"Type '{node.id}' has more than one value")
        if isinstance(node, ast.Name | ast.Attribute):
            symbol, owner = self._symbol(node, scope, depth + 1)
            return self._collapse_symbol(node, symbol, owner, depth + 1)
        raise UnresolvableKeyError(f"Can't reduce type '{ast.unparse(node)}' to a value")

    def _collapse_generic(self, node: ast.Subscript, scope: ModuleScope, depth: int) -> Any:
        head = terminal_name(node.value)
        args = _subscript_args(node)
        if head == "Literal":
            if len(args) != 1:
                raise UnresolvableKeyError(
                    f"'{ast.unparse(node)}' has {len(args)} possible values"
                )
            return self._value_of(args[0], scope, depth + 1)
        if head in _UNWRAP_FIRST:
            return self._collapse(args[0], scope, depth + 1)
        if head in _TUPLE_TYPES:
            if any(isinstance(arg, ast.Constant) and arg.value is Ellipsis for arg in args):
                raise UnresolvableKeyError(f"Variadic tuple '{ast.unparse(node)}' has no fixed value")
            if len(args) == 1 and isinstance(args[0], ast.Tuple) and not args[0].elts:
                return ()
            return tuple(self._collapse(arg, scope, depth + 1) for arg in args)
        if head in _UNION_TYPES:
            raise UnresolvableKeyError(f"Union type '{ast.unparse(node)}' has more than one value")
        raise UnresolvableKeyError(f"Can't reduce type '{ast.unparse(node)}' to a value")

    def _collapse_symbol(self, node: ast.expr, symbol: Any, owner: ModuleScope, depth: int) -> Any:
        if isinstance(symbol, ast.ClassDef):
            return self._collapse_class(symbol, owner, depth + 1)
        if isinstance(symbol, ast.TypeAlias):
            return self._collapse(symbol.value, owner, depth + 1)
        if isinstance(symbol, ast.AnnAssign) and terminal_name(symbol.annotation) == "TypeAlias":
            if symbol.value is None:
                raise UnresolvableKeyError(f"Type alias '{ast.unparse(node)}' has no value")
            return self._collapse(symbol.value, owner, depth + 1)
        if isinstance(symbol, ast.Assign):
            # implicit alias: ``OrderKey = Literal["orders.get"]``
            return self._collapse(symbol.value, owner, depth + 1)
        if isinstance(symbol, tuple):
            class_ref, member = symbol
            if _base_names(class_ref.node) & _ENUM_BASES:
                # ``Literal[Color.RED]``-style member used as a type
                return self._class_member_value(class_ref, member, depth + 1)
        raise UnresolvableKeyError(f"'{ast.unparse(node)}' does not denote a single value")

    def _collapse_class(self, node: ast.ClassDef, scope: ModuleScope, depth: int) -> Any:
        self._check_depth(depth)
        bases = _base_names(node)
        if bases & _ENUM_BASES:
            members = _enum_members(node)
            if len(members) != 1:
                raise UnresolvableKeyError(f"Enum '{node.name}' has {len(members)} members")
            return self._class_member_value(_ClassRef(node, scope), members[0], depth + 1)
        fields = self._class_fields(node, scope, depth + 1)
        if "NamedTuple" in bases:
            return tuple(self._collapse(annotation, owner, depth + 1) for annotation, owner in fields.values())
        return {name: self._collapse(annotation, owner, depth + 1) for name, (annotation, owner) in fields.items()}

    def _class_fields(
        self,
        node: ast.ClassDef,
        scope: ModuleScope,
        depth: int,
    ) -> dict[str, tuple[ast.expr, ModuleScope]]:
        self._check_depth(depth)
        fields: dict[str, tuple[ast.expr, ModuleScope]] = {}
        for base in node.bases:
            if not isinstance(base, ast.Name | ast.Attribute):
                continue
            try:
                symbol, owner = self._symbol(base, scope, depth + 1)
            except UnresolvableKeyError:
                continue
            if isinstance(symbol, ast.ClassDef):
                fields.update(self._class_fields(symbol, owner, depth + 1))
        for stmt in node.body:
            if not (isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name)):
                continue
            if terminal_name(stmt.annotation) == "ClassVar" or (
                isinstance(stmt.annotation, ast.Subscript) and terminal_name(stmt.annotation.value) == "ClassVar"
            ):
                continue
            fields[stmt.target.id] = (stmt.annotation, scope)
        return fields

    # -- string-likeness -----------------------------------------------

    def _string_like(self, expr: ast.expr, scope: ModuleScope, depth: int) -> bool:
        if depth > _MAX_DEPTH:
            return False
        if isinstance(expr, ast.Constant):
            return isinstance(expr.value, str)
        if isinstance(expr, ast.JoinedStr):
            return True
        if not isinstance(expr, ast.Name | ast.Attribute):
            return False
        try:
            symbol, owner = self._symbol(expr, scope, depth + 1)
        except UnresolvableKeyError:
            return False
        if isinstance(symbol, tuple):
            class_ref, member = symbol
            if _base_names(class_ref.node) & _ENUM_BASES:
                if _base_names(class_ref.node) & _STRING_ENUM_BASES:
                    return True
                return isinstance(member, ast.Assign) and self._string_like(member.value, class_ref.scope, depth + 1)
            symbol, owner = member, class_ref.scope
        if isinstance(symbol, ast.AnnAssign):
            return self._string_type(symbol.annotation, symbol.value, owner, depth + 1)
        if isinstance(symbol, ast.Assign):
            return self._string_like(symbol.value, owner, depth + 1)
        return False

    def _string_type(self, annotation: ast.expr, value: ast.expr | None, scope: ModuleScope, depth: int) -> bool:
        if depth > _MAX_DEPTH:
            return False
        if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
            try:
                annotation = ast.parse(annotation.value, mode="eval").body
            except SyntaxError:
                return False
        head = terminal_name(annotation.value if isinstance(annotation, ast.Subscript) else annotation)
        if isinstance(annotation, ast.Subscript):
            args = _subscript_args(annotation)
            if head == "Literal":
                return all(isinstance(arg, ast.Constant) and isinstance(arg.value, str) for arg in args)
            if head in _UNWRAP_FIRST:
                return self._string_type(args[0], value, scope, depth + 1)
            if head == "Union":
                return all(self._string_type(arg, None, scope, depth + 1) for arg in args)
            return False
        if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            return self._string_type(annotation.left, None, scope, depth + 1) and self._string_type(
                annotation.right, None, scope, depth + 1
            )
        if head in {"Final", "ClassVar"}:
            return value is not None and self._string_like(value, scope, depth + 1)
        if head in _STRING_TYPES:
            return True
        if isinstance(annotation, ast.Name | ast.Attribute):
            try:
                symbol, owner = self._symbol(annotation, scope, depth + 1)
            except UnresolvableKeyError:
                return False
            if isinstance(symbol, ast.TypeAlias):
                return self._string_type(symbol.value, None, owner, depth + 1)
            if isinstance(symbol, ast.AnnAssign | ast.Assign) and symbol.value is not None:
                return self._string_type(symbol.value, None, owner, depth + 1)
            if isinstance(symbol, ast.ClassDef):
                return bool(_base_names(symbol) & _STRING_ENUM_BASES)
        return False
