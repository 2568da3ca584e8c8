"""Call context for client proxy log records."""

from __future__ import annotations

import contextvars
import logging
from typing import Any

__all__ = ["CONTEXT_FIELDS", "ContextFilter", "LogContext", "get_logger"]

CONTEXT_FIELDS = ("service", "method")

_CALL_CONTEXT: contextvars.ContextVar[dict[str, str]] = contextvars.ContextVar("rpc_proxygen_call_context")


class LogContext:
    """Binds the service and client method of the running call to log records.

    Nested contexts inherit the outer values they do not override. Values
    live in a context variable, so concurrent calls on one proxy do not see
    each other's context.
    """

    def __init__(self, service: str | None = None, method: str | None = None) -> None:
        self._values = {key: value for key, value in (("service", service), ("method", method)) if value is not None}
        self._token: contextvars.Token[dict[str, str]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _CALL_CONTEXT.set({**_CALL_CONTEXT.get({}), **self._values})
        return self

    def __exit__(self, exc_type: Any, exc: Any, traceback: Any) -> None:
        if self._token is not None:
            _CALL_CONTEXT.reset(self._token)
            self._token = None

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_CALL_CONTEXT.get({}))

    @staticmethod
    def clear() -> None:
        _CALL_CONTEXT.set({})


class ContextFilter(logging.Filter):
    """Copies the active ``LogContext`` onto each record; unset fields become ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _CALL_CONTEXT.get({})
        for key in CONTEXT_FIELDS:
            if key not in record.__dict__:
                record.__dict__[key] = context.get(key, "-")
        return True


def get_logger(name: str) -> logging.Logger:
    """``logging.getLogger(name)`` with a ``ContextFilter`` attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(existing, ContextFilter) for existing in logger.filters):
        logger.addFilter(ContextFilter())
    return logger
