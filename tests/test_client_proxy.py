from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from rpc_proxygen.client import CallOptions, ClientProxy, create_client_proxy
from rpc_proxygen.client.routing_keys import RoutingKey
from rpc_proxygen.client.transport import ClientTransport, ConnectionStatus
from rpc_proxygen.config.models import ProxyConfig
from rpc_proxygen.exceptions import (
    EmptyResponseError,
    InvalidParamsError,
    MethodNotFoundError,
    NotConnectedError,
    ProxygenError,
    RpcTimeoutError,
    UnknownServiceError,
)

FAST = ProxyConfig(connect_timeout_ms=50, retry_delay_ms=0, call_timeout_ms=200)

ROUTING_KEYS = {
    "users": {
        "get_user": ("users.get", True),
        "count_users": ({"cmd": "count"}, False),
        "list_users_stream": ("users.list", False),
        "emit_created": ("users.created", True),
        "emit_refreshed": ("users.refreshed", False),
    },
    "user_profile": {
        "get_profile": (["profile", "get"], True),
    },
}


class RecordingTransport(ClientTransport):
    """Replies to every call with ``responses``, one item every ``delay`` seconds."""

    def __init__(self, responses: list[Any] | None = None, *, delay: float = 0.0) -> None:
        self.responses = ["ok"] if responses is None else responses
        self.delay = delay
        self.connect_calls = 0
        self.current_status = ConnectionStatus.DISCONNECTED
        self.sent: list[tuple[Any, Any]] = []
        self.emitted: list[tuple[Any, Any]] = []
        self.closed = 0

    async def connect(self) -> None:
        self.connect_calls += 1
        self.current_status = ConnectionStatus.CONNECTED

    @property
    def status(self) -> AsyncIterator[ConnectionStatus]:
        return self._status()

    async def _status(self) -> AsyncIterator[ConnectionStatus]:
        yield self.current_status

    def send(self, routing_key: Any, payload: Any) -> AsyncIterator[Any]:
        self.sent.append((routing_key, payload))
        return self._reply()

    def emit(self, routing_key: Any, payload: Any) -> AsyncIterator[Any]:
        self.emitted.append((routing_key, payload))
        return self._reply()

    async def _reply(self) -> AsyncIterator[Any]:
        try:
            for item in self.responses:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield item
        finally:
            self.closed += 1


def _proxy(transport: RecordingTransport, service: str = "users", config: ProxyConfig = FAST) -> ClientProxy:
    return create_client_proxy(service, transport, routing_keys=ROUTING_KEYS, config=config)


def test_method_table_is_fixed_at_construction() -> None:
    proxy = _proxy(RecordingTransport())

    assert proxy._method_names() == ["count_users", "emit_created", "emit_refreshed", "get_user", "list_users_stream"]
    assert proxy.get_user is proxy["get_user"]
    assert "emit_created" in proxy
    assert "emit_created" in dir(proxy)
    with pytest.raises(AttributeError):
        proxy.delete_user
    with pytest.raises(MethodNotFoundError):
        proxy["delete_user"]


def test_dispatch_mode_follows_method_name() -> None:
    proxy = _proxy(RecordingTransport())

    assert not proxy._binding("get_user").is_stream
    assert not proxy._binding("get_user").is_event
    assert proxy._binding("list_users_stream").is_stream
    assert not proxy._binding("list_users_stream").is_event
    assert proxy._binding("emit_created").is_stream
    assert proxy._binding("emit_created").is_event


def test_handler_names_shared_with_proxy_internals_resolve_to_methods() -> None:
    keys = {name: (f"users.{name}", False) for name in ("methods", "binding", "supervisor", "service_name")}
    proxy = ClientProxy("users", RecordingTransport(), keys, FAST)

    for name in keys:
        assert getattr(proxy, name) is proxy[name]
        assert getattr(proxy, name).binding.routing_key.value == f"users.{name}"


def test_underscore_method_names_are_rejected() -> None:
    with pytest.raises(ProxygenError, match="_dispatch"):
        ClientProxy("users", RecordingTransport(), {"_dispatch": ("users.dispatch", False)}, FAST)


@pytest.mark.asyncio
async def test_request_returns_first_response() -> None:
    transport = RecordingTransport(["first", "second"])
    proxy = _proxy(transport)

    call = proxy.get_user({"id": 1})

    assert inspect.isawaitable(call)
    assert await call == "first"
    assert transport.sent == [("users.get", {"id": 1})]
    assert transport.emitted == []
    assert transport.connect_calls == 1
    assert transport.closed == 1


@pytest.mark.asyncio
async def test_stream_method_yields_every_response() -> None:
    transport = RecordingTransport([1, 2, 3])
    proxy = _proxy(transport)

    stream = proxy.list_users_stream()

    assert not inspect.isawaitable(stream)
    assert [item async for item in stream] == [1, 2, 3]
    assert transport.sent == [("users.list", {})]


@pytest.mark.asyncio
async def test_emit_dispatches_an_event_stream() -> None:
    transport = RecordingTransport(["ack"])
    proxy = _proxy(transport)

    acks = [item async for item in proxy.emit_created({"id": 7})]

    assert acks == ["ack"]
    assert transport.emitted == [("users.created", {"id": 7})]
    assert transport.sent == []


@pytest.mark.asyncio
async def test_stream_is_lazy_until_iterated() -> None:
    transport = RecordingTransport()
    proxy = _proxy(transport)

    stream = proxy.emit_refreshed()
    assert transport.connect_calls == 0

    await anext(stream)
    await stream.aclose()
    assert transport.connect_calls == 1


@pytest.mark.asyncio
async def test_payloadless_method_takes_options_first() -> None:
    transport = RecordingTransport(["ok"], delay=0.05)
    proxy = _proxy(transport)

    with pytest.raises(RpcTimeoutError):
        await proxy.count_users({"timeout_ms": 10})

    assert transport.sent == [({"cmd": "count"}, {})]


@pytest.mark.asyncio
async def test_payload_method_takes_payload_then_options() -> None:
    transport = RecordingTransport(["ok"], delay=0.05)
    proxy = _proxy(transport)

    with pytest.raises(RpcTimeoutError) as exc_info:
        await proxy.get_user({"timeout_ms": 10}, CallOptions(timeout_ms=10))

    assert transport.sent == [("users.get", {"timeout_ms": 10})]
    assert exc_info.value.data == {"service": "users", "method": "get_user"}


@pytest.mark.asyncio
async def test_default_call_timeout_applies(caplog: pytest.LogCaptureFixture) -> None:
    transport = RecordingTransport(["late"], delay=0.2)
    proxy = _proxy(transport, config=ProxyConfig(connect_timeout_ms=50, retry_delay_ms=0, call_timeout_ms=20))
    caplog.set_level(logging.WARNING, logger="ClientProxy(users)")

    with pytest.raises(RpcTimeoutError):
        await proxy.get_user(1)

    (warning,) = caplog.records
    assert "users.get_user timed out" in warning.getMessage()
    assert transport.closed == 1


@pytest.mark.asyncio
async def test_timeout_bounds_each_stream_item() -> None:
    transport = RecordingTransport([1, 2, 3], delay=0.02)
    proxy = _proxy(transport)

    items = [item async for item in proxy.list_users_stream({"timeout_ms": 100})]

    assert items == [1, 2, 3]


@pytest.mark.asyncio
async def test_empty_stream_fails_a_single_value_call() -> None:
    proxy = _proxy(RecordingTransport([]))

    with pytest.raises(EmptyResponseError):
        await proxy.get_user(1)


@pytest.mark.asyncio
async def test_calls_after_disconnect_fail() -> None:
    transport = RecordingTransport()
    proxy = _proxy(transport)
    assert await proxy.get_user(1) == "ok"

    transport.current_status = ConnectionStatus.DISCONNECTED

    with pytest.raises(NotConnectedError):
        await proxy.get_user(2)
    with pytest.raises(NotConnectedError):
        await anext(proxy.list_users_stream())
    assert len(transport.sent) == 1


@pytest.mark.parametrize("options", [{"timeout_ms": 0}, {"timeout_ms": -5}, {"unknown": 1}])
def test_invalid_call_options_are_rejected(options: dict[str, Any]) -> None:
    proxy = _proxy(RecordingTransport())

    with pytest.raises(InvalidParamsError):
        proxy.get_user(1, options)


@pytest.mark.parametrize("service", ["user_profile", "UserProfile", "user-profile"])
def test_service_name_in_any_case_style(service: str) -> None:
    proxy = _proxy(RecordingTransport(), service=service)

    assert proxy._method_names() == ["get_profile"]
    assert proxy._binding("get_profile").routing_key == RoutingKey(["profile", "get"], True)


def test_unknown_service_is_rejected() -> None:
    with pytest.raises(UnknownServiceError) as exc_info:
        _proxy(RecordingTransport(), service="orders")

    assert exc_info.value.data["known"] == ["user_profile", "users"]


@pytest.mark.asyncio
async def test_proxy_from_generated_file(tmp_path: Path) -> None:
    path = tmp_path / "routing_keys.py"
    path.write_text("ROUTING_KEYS = {'users': {'get_user': ('users.get', True)}}\n", encoding="utf-8")
    transport = RecordingTransport(["found"])

    proxy = create_client_proxy("users", transport, routing_keys=path, config=FAST)

    assert await proxy.get_user(5) == "found"
