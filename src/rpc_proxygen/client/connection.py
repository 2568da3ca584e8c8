"""Connection supervision shared by every method of one client proxy."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from rpc_proxygen.client.transport import ClientTransport, ConnectionStatus
from rpc_proxygen.config.models import ProxyConfig
from rpc_proxygen.exceptions import NotConnectedError, ServiceConnectionError
from rpc_proxygen.observability.logging import get_logger
from rpc_proxygen.resilience.retry_policy import RetryExecutor

__all__ = ["ConnectionState", "ConnectionSupervisor", "proxy_logger"]


class ConnectionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, TimeoutError):
        return "timed out"
    return str(exc) or type(exc).__name__


def proxy_logger(service_name: str) -> logging.Logger:
    return get_logger(f"ClientProxy({service_name})")


class ConnectionSupervisor:
    """Connects lazily on the first call and gates every later call on the transport status.

    The first caller owns the connect attempt; callers arriving while it runs
    wait for it instead of starting a second one. A failed connect is not
    retried again later: the proxy stays ``FAILED`` and subsequent calls only
    pass while the transport itself reports ``connected``.
    """

    def __init__(
        self,
        service_name: str,
        transport: ClientTransport,
        config: ProxyConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._service_name = service_name
        self._transport = transport
        self._config = config or ProxyConfig()
        self._logger = logger or proxy_logger(service_name)
        self._state = ConnectionState.UNINITIALIZED
        self._connect_task: asyncio.Task[None] | None = None
        self._executor = RetryExecutor(self._config.retry_policy(), on_failure=self._on_attempt_failed)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connect_attempts(self) -> int:
        """Upper bound of transport connects for the first call, initial attempt included."""
        return self._executor.max_attempts

    async def ensure_connected(self) -> None:
        if self._state == ConnectionState.UNINITIALIZED:
            self._state = ConnectionState.CONNECTING
            self._connect_task = asyncio.ensure_future(self._connect())
            # a cancelled first caller must not abort the attempt others wait on
            await asyncio.shield(self._connect_task)
            return
        if self._state == ConnectionState.CONNECTING and self._connect_task is not None:
            await asyncio.wait({self._connect_task})
        await self._check_status()

    async def _connect(self) -> None:
        try:
            await self._executor.execute(self._connect_once)
        except Exception as exc:
            self._state = ConnectionState.FAILED
            reason = _failure_reason(exc)
            self._logger.error("Max retries exceeded, unable to connect to %s", self._service_name)
            raise ServiceConnectionError(
                message=f"Unable to connect to {self._service_name}: {reason}",
                data={"service": self._service_name, "attempts": self._executor.max_attempts, "reason": reason},
                cause=exc,
            ) from exc
        self._state = ConnectionState.CONNECTED
        self._logger.debug("%s connection established", self._service_name)

    async def _connect_once(self) -> None:
        async with asyncio.timeout(self._config.connect_timeout_ms / 1000):
            await self._transport.connect()

    def _on_attempt_failed(self, attempt: int, exc: Exception) -> None:
        self._logger.warning(
            "Connect attempt %d/%d to %s failed: %s",
            attempt,
            self._executor.max_attempts,
            self._service_name,
            _failure_reason(exc),
        )

    async def _check_status(self) -> None:
        feed = self._transport.status
        try:
            status = await anext(feed, ConnectionStatus.DISCONNECTED)
        finally:
            aclose = getattr(feed, "aclose", None)
            if aclose is not None:
                await aclose()
        if status != ConnectionStatus.CONNECTED:
            self._logger.warning("%s is not connected (status: %s)", self._service_name, status)
            raise NotConnectedError(
                message=f"{self._service_name} is not connected",
                data={"service": self._service_name, "status": str(status)},
            )
