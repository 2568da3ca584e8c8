"""Diagnostics collected over one generation run."""

from __future__ import annotations

import ast
from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    "SourceLocation",
]


class DiagnosticKind(StrEnum):
    EXTRACTION = "extraction"
    UNIQUENESS = "uniqueness"


@dataclass(frozen=True, slots=True)
class SourceLocation:
    path: Path
    line: int
    column: int

    @classmethod
    def of(cls, path: Path, node: ast.AST) -> "SourceLocation":
        # ast columns are 0-based
        return cls(path=path, line=node.lineno, column=node.col_offset + 1)

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    locations: tuple[SourceLocation, ...] = ()

    def __str__(self) -> str:
        return self.message


class Diagnostics:
    """Ordered collection of diagnostics; any entry fails the run."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def report(
        self,
        kind: DiagnosticKind,
        message: str,
        *locations: SourceLocation,
    ) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, message=message, locations=tuple(locations))
        self._items.append(diagnostic)
        return diagnostic

    def extend(self, other: "Diagnostics") -> None:
        self._items.extend(other)

    @property
    def failed(self) -> bool:
        return bool(self._items)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [item for item in self._items if item.kind == kind]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return self.failed
