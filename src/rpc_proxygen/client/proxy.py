"""Client proxies dispatching calls through a supervised transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rpc_proxygen.client.call_options import CallOptions, coerce_call_options, resolve_timeout_s
from rpc_proxygen.client.connection import ConnectionSupervisor, proxy_logger
from rpc_proxygen.client.routing_keys import RoutingKey, RoutingKeyMap, load_routing_keys, parse_routing_keys
from rpc_proxygen.client.transport import ClientTransport
from rpc_proxygen.codegen.naming import EMIT_PREFIX, STREAM_SUFFIX, snake_case
from rpc_proxygen.config.models import ProxyConfig
from rpc_proxygen.exceptions import (
    EmptyResponseError,
    MethodNotFoundError,
    ProxygenError,
    RpcTimeoutError,
    UnknownServiceError,
)
from rpc_proxygen.observability.logging import LogContext

__all__ = ["ClientProxy", "ProxyMethodBinding", "create_client_proxy"]

OptionsArg = CallOptions | Mapping[str, Any] | None


@dataclass(frozen=True, slots=True)
class ProxyMethodBinding:
    """How one client method dispatches: routing key, payload presence and return shape."""

    name: str
    routing_key: RoutingKey
    is_event: bool
    is_stream: bool

    @classmethod
    def of(cls, name: str, routing_key: RoutingKey) -> "ProxyMethodBinding":
        is_event = name.startswith(EMIT_PREFIX)
        return cls(
            name=name,
            routing_key=routing_key,
            is_event=is_event,
            is_stream=is_event or name.endswith(STREAM_SUFFIX),
        )

    def split_args(self, first: Any, second: Any) -> tuple[Any, OptionsArg]:
        """``(payload, options)`` when the handler takes a payload, else ``(options)`` and an empty payload."""
        if self.routing_key.has_payload:
            return first, second
        return {}, first


class _BoundMethod:
    def __init__(self, proxy: ClientProxy, binding: ProxyMethodBinding) -> None:
        self._proxy = proxy
        self.binding = binding
        self.__name__ = binding.name

    def __call__(self, first: Any = None, second: Any = None) -> Awaitable[Any] | AsyncIterator[Any]:
        payload, options = self.binding.split_args(first, second)
        return self._proxy._dispatch(self.binding, payload, coerce_call_options(options))

    def __repr__(self) -> str:
        return f"<proxy method {self._proxy._service_name}.{self.binding.name}>"


class ClientProxy:
    """Call proxy of one service.

    Methods are fixed when the proxy is built: one per entry of the service's
    routing-key map. The proxy's own members are all underscore-prefixed so
    that any public name resolves to a method. Event emitters (``emit_*``)
    and ``*_stream`` methods return async iterators; every other method
    returns an awaitable of the first response.
    """

    def __init__(
        self,
        service_name: str,
        transport: ClientTransport,
        routing_keys: Mapping[str, RoutingKey],
        config: ProxyConfig | None = None,
    ) -> None:
        self._service_name = service_name
        self._transport = transport
        self._config = config or ProxyConfig()
        self._logger = proxy_logger(service_name)
        reserved = sorted(name for name in routing_keys if name.startswith("_"))
        if reserved:
            raise ProxygenError(f"Method names of {service_name} must not start with an underscore: {reserved}")
        self._supervisor = ConnectionSupervisor(service_name, transport, self._config, logger=self._logger)
        self._methods: dict[str, _BoundMethod] = {
            name: _BoundMethod(self, ProxyMethodBinding.of(name, RoutingKey(*key)))
            for name, key in routing_keys.items()
        }

    def _method_names(self) -> list[str]:
        return sorted(self._methods)

    def _binding(self, name: str) -> ProxyMethodBinding:
        return self[name].binding

    def __getattr__(self, name: str) -> _BoundMethod:
        methods = self.__dict__.get("_methods")
        if methods is not None and name in methods:
            return methods[name]
        raise AttributeError(f"{type(self).__name__} for {self.__dict__.get('_service_name')!r} has no method {name!r}")

    def __getitem__(self, name: str) -> _BoundMethod:
        try:
            return self._methods[name]
        except KeyError:
            raise MethodNotFoundError(
                message=f"{self._service_name} has no method {name!r}",
                data={"service": self._service_name, "method": name},
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._methods})

    def __repr__(self) -> str:
        return f"<ClientProxy {self._service_name} methods={len(self._methods)}>"

    def _dispatch(
        self,
        binding: ProxyMethodBinding,
        payload: Any,
        options: CallOptions,
    ) -> Awaitable[Any] | AsyncIterator[Any]:
        timeout_s = resolve_timeout_s(options, self._config.call_timeout_ms)
        stream = self._stream(binding, payload, timeout_s)
        if binding.is_stream:
            return stream
        return self._first(binding, stream)

    async def _stream(self, binding: ProxyMethodBinding, payload: Any, timeout_s: float) -> AsyncIterator[Any]:
        with LogContext(service=self._service_name, method=binding.name):
            await self._supervisor.ensure_connected()
        dispatch = self._transport.emit if binding.is_event else self._transport.send
        responses = aiter(dispatch(binding.routing_key.value, payload))
        try:
            while True:
                try:
                    async with asyncio.timeout(timeout_s):
                        item = await anext(responses)
                except StopAsyncIteration:
                    return
                except TimeoutError:
                    with LogContext(service=self._service_name, method=binding.name):
                        self._logger.warning(
                            "%s.%s timed out after %.3fs", self._service_name, binding.name, timeout_s
                        )
                    raise RpcTimeoutError(
                        message=f"Request exceeded timeout of {timeout_s:.3f}s",
                        data={"service": self._service_name, "method": binding.name},
                    ) from None
                yield item
        finally:
            aclose = getattr(responses, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _first(self, binding: ProxyMethodBinding, stream: AsyncIterator[Any]) -> Any:
        try:
            async for item in stream:
                return item
        finally:
            await stream.aclose()  # type: ignore[attr-defined]
        raise EmptyResponseError(
            message=f"{self._service_name}.{binding.name} completed without a response",
            data={"service": self._service_name, "method": binding.name},
        )


def create_client_proxy(
    service_name: str,
    transport: ClientTransport,
    *,
    routing_keys: RoutingKeyMap | Mapping[str, Any] | str | Path,
    config: ProxyConfig | None = None,
) -> ClientProxy:
    """Build the proxy of ``service_name`` from the generated routing-key map.

    ``service_name`` may be given in any case style (``users``, ``Users``,
    ``user-profile``); it is looked up by its snake_case map key.
    ``routing_keys`` is either the loaded map or the path of the generated file.
    """
    if isinstance(routing_keys, str | Path):
        key_map = load_routing_keys(routing_keys)
    else:
        key_map = parse_routing_keys(routing_keys)
    service_key = snake_case(service_name)
    if service_key not in key_map:
        logging.getLogger(__name__).error("No routing keys for service %s", service_name)
        raise UnknownServiceError(
            message=f"No routing keys for service {service_name!r}",
            data={"service": service_name, "known": sorted(key_map)},
        )
    return ClientProxy(service_name, transport, key_map[service_key], config)
