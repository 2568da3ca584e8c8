"""Placeholder types referenced by generated proxy interfaces.

A generated ``UsersProxy`` protocol names each handler by owning class, method
name and payload parameter index instead of copying its signature, so the
interface stays valid when the handler's parameter types change.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable
from typing import Any, Generic, Protocol, TypeVar, TypeVarTuple

from rpc_proxygen.client.call_options import CallOptions

__all__ = ["PayloadOf", "ProxyEvent", "ProxyMethod"]

Controller = TypeVar("Controller", contravariant=True)
Name = TypeVar("Name", contravariant=True)
Index = TypeVar("Index", contravariant=True)
Payloads = TypeVarTuple("Payloads")


class ProxyMethod(Protocol[Controller, Name, Index]):
    """Client side of ``Controller.<Name>`` whose payload is parameter ``Index``."""

    def __call__(
        self,
        payload: Any = None,
        options: CallOptions | dict[str, Any] | None = None,
    ) -> Awaitable[Any] | AsyncIterator[Any]: ...


class PayloadOf(Generic[Controller, Name, Index]):
    """Payload type of ``Controller.<Name>`` at parameter ``Index``."""


class ProxyEvent(Protocol[*Payloads]):
    """Emitter of an event; the payload must satisfy every listed handler."""

    def __call__(
        self,
        payload: Any = None,
        options: CallOptions | dict[str, Any] | None = None,
    ) -> AsyncIterator[Any]: ...
