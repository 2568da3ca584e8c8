"""Public API for rpc_proxygen.

Handler modules import the markers; applications import the client proxy
factory. The build-time generator lives in ``rpc_proxygen.codegen``.
"""

from rpc_proxygen.client import (
    CallOptions,
    ClientProxy,
    ClientTransport,
    ConnectionStatus,
    create_client_proxy,
    load_routing_keys,
)
from rpc_proxygen.exceptions import (
    EmptyResponseError,
    NotConnectedError,
    ProxygenError,
    RpcException,
    RpcTimeoutError,
    ServiceConnectionError,
    UnknownServiceError,
)
from rpc_proxygen.markers import Body, Payload, event_pattern, message_pattern

__all__ = [
    # markers
    "Body",
    "Payload",
    "event_pattern",
    "message_pattern",
    # client
    "CallOptions",
    "ClientProxy",
    "ClientTransport",
    "ConnectionStatus",
    "create_client_proxy",
    "load_routing_keys",
    # errors
    "EmptyResponseError",
    "NotConnectedError",
    "ProxygenError",
    "RpcException",
    "RpcTimeoutError",
    "ServiceConnectionError",
    "UnknownServiceError",
]
