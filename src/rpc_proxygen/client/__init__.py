from rpc_proxygen.client.call_options import CallOptions
from rpc_proxygen.client.connection import ConnectionState, ConnectionSupervisor
from rpc_proxygen.client.proxy import ClientProxy, ProxyMethodBinding, create_client_proxy
from rpc_proxygen.client.routing_keys import RoutingKey, load_routing_keys
from rpc_proxygen.client.transport import ClientTransport, ConnectionStatus

__all__ = [
    "CallOptions",
    "ClientProxy",
    "ClientTransport",
    "ConnectionState",
    "ConnectionStatus",
    "ConnectionSupervisor",
    "ProxyMethodBinding",
    "RoutingKey",
    "create_client_proxy",
    "load_routing_keys",
]
