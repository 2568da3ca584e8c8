from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Any

__all__ = ["ClientTransport", "ConnectionStatus"]


class ConnectionStatus(StrEnum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


class ClientTransport(ABC):
    """Abstract base class for the transport behind one client proxy."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection; raises when the attempt fails."""

    @property
    @abstractmethod
    def status(self) -> AsyncIterator[ConnectionStatus]:
        """Feed of connection status changes, starting with the current status."""

    @abstractmethod
    def send(self, routing_key: Any, payload: Any) -> AsyncIterator[Any]:
        """Sends a request and returns the stream of responses.
        Args:
            routing_key: Routing-key value of the request handler.
            payload: Request payload.
        Returns:
            An async iterator over response values.
        """

    @abstractmethod
    def emit(self, routing_key: Any, payload: Any) -> AsyncIterator[Any]:
        """Publishes an event and returns the stream of acknowledgements."""
