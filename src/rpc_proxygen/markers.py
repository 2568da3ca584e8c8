"""Decorators and parameter markers read by the handler extractor.

Handler modules use these at import time; the generator never imports the
modules, it matches the same names in their source.

    class OrdersController:
        @message_pattern(GET_ORDER)
        async def get_order(self, query: Annotated[OrderQuery, Payload]) -> Order: ...

        @event_pattern("orders.created")
        async def on_created(self, event: OrderCreated) -> None: ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, TypeVar

__all__ = [
    "Body",
    "HandlerKind",
    "PATTERN_ATTRIBUTE",
    "Payload",
    "PatternMetadata",
    "event_pattern",
    "get_pattern_metadata",
    "message_pattern",
]

_F = TypeVar("_F", bound=Callable[..., Any])

PATTERN_ATTRIBUTE = "__rpc_pattern__"


class HandlerKind(StrEnum):
    REQUEST = "request"
    EVENT = "event"


@dataclass(frozen=True, slots=True)
class PatternMetadata:
    kind: HandlerKind
    pattern: Any


class _ParamMarker:
    """Marks the payload parameter, as ``Annotated[T, Payload]`` or ``Annotated[T, Payload()]``."""

    def __call__(self) -> "_ParamMarker":
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class _PayloadMarker(_ParamMarker):
    pass


class _BodyMarker(_ParamMarker):
    pass


Payload = _PayloadMarker()
Body = _BodyMarker()


def _tag(kind: HandlerKind, pattern: Any) -> Callable[[_F], _F]:
    def decorator(func: _F) -> _F:
        setattr(func, PATTERN_ATTRIBUTE, PatternMetadata(kind=kind, pattern=pattern))
        return func

    return decorator


def message_pattern(pattern: Any) -> Callable[[_F], _F]:
    """Mark a method as the request handler for ``pattern``."""
    return _tag(HandlerKind.REQUEST, pattern)


def event_pattern(pattern: Any) -> Callable[[_F], _F]:
    """Mark a method as a handler for the ``<service>.<event>`` notification."""
    return _tag(HandlerKind.EVENT, pattern)


def get_pattern_metadata(func: Callable[..., Any]) -> PatternMetadata | None:
    return getattr(func, PATTERN_ATTRIBUTE, None)
