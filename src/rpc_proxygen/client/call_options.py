from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rpc_proxygen.exceptions import InvalidParamsError

__all__ = ["CallOptions", "coerce_call_options", "resolve_timeout_s"]


class CallOptions(BaseModel):
    """Per-call overrides of a proxy method."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout_ms: int | None = Field(default=None, gt=0, description="Call timeout in milliseconds")


def coerce_call_options(value: CallOptions | Mapping[str, Any] | None) -> CallOptions:
    if value is None:
        return CallOptions()
    if isinstance(value, CallOptions):
        return value
    try:
        return CallOptions.model_validate(dict(value))
    except (ValidationError, TypeError, ValueError) as exc:
        raise InvalidParamsError(message=f"Invalid call options: {exc}", cause=exc) from exc


def resolve_timeout_s(options: CallOptions | None, default_ms: int) -> float:
    # Priority: options.timeout_ms > proxy default
    if options is not None and options.timeout_ms is not None:
        return options.timeout_ms / 1000.0
    return default_ms / 1000.0
