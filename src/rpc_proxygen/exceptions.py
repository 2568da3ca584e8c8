from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ProxygenError(Exception):
    """Raised when the generator is used incorrectly (not a source diagnostic)."""


@dataclass(frozen=True)
class RpcException(Exception):
    """Base class for client proxy runtime errors with a canonical error shape."""

    code: int
    message: str
    data: Any | None = None
    cause: Exception | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", (self.message,))
        if self.cause is not None:
            object.__setattr__(self, "__cause__", self.cause)
            object.__setattr__(self, "__suppress_context__", True)

    def to_error_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "data": self.data}


@dataclass(frozen=True)
class InvalidParamsError(RpcException):
    """Raised when call options or arguments are invalid."""

    code: int = 2001
    message: str = "Invalid params"


@dataclass(frozen=True)
class MethodNotFoundError(RpcException):
    """Raised when a proxy method has no routing key."""

    code: int = 4001
    message: str = "Method not found"


@dataclass(frozen=True)
class UnknownServiceError(RpcException):
    """Raised when the routing-key map has no entry for the service."""

    code: int = 4002
    message: str = "Service not found"


@dataclass(frozen=True)
class EmptyResponseError(RpcException):
    """Raised when a single-value call completes without any emission."""

    code: int = 5004
    message: str = "Empty response"


@dataclass(frozen=True)
class ServiceConnectionError(RpcException):
    """Raised to the first caller when connecting failed after every retry."""

    code: int = 5002
    message: str = "Unable to connect"


@dataclass(frozen=True)
class NotConnectedError(RpcException):
    """Raised when a call is made while the transport reports it is not connected."""

    code: int = 5005
    message: str = "Client not connected"


@dataclass(frozen=True)
class RpcTimeoutError(RpcException):
    """Raised when an RPC call exceeds its timeout."""

    code: int = 5003
    message: str = "RPC timeout"
