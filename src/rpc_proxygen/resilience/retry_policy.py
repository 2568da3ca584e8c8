"""Retry policy used for connection attempts."""

from __future__ import annotations

import asyncio
import enum
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")
Attempt = Callable[..., T | Awaitable[T]]
RetryHook = Callable[[int, Exception], None]


class RetryStrategy(str, enum.Enum):
    """How the pause between two connect attempts grows."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Connect retry settings.

    ``max_attempts`` counts the first attempt, so the default of five retries
    three seconds apart is six attempts.
    """

    max_attempts: int = 6
    strategy: RetryStrategy = RetryStrategy.FIXED
    initial_delay_ms: int = 3000
    max_delay_ms: int | None = None

    def delay_ms(self, attempt: int) -> float:
        """Pause after failed attempt number ``attempt`` (1-based)."""
        step = max(0, int(self.initial_delay_ms))
        match self.strategy:
            case RetryStrategy.EXPONENTIAL:
                delay = float(step * 2 ** max(0, attempt - 1))
            case RetryStrategy.LINEAR:
                delay = float(step * attempt)
            case _:
                delay = float(step)
        if self.max_delay_ms is not None:
            delay = min(delay, float(self.max_delay_ms))
        return delay


class RetryExecutor:
    """Runs one attempt callable until it succeeds or the policy's attempts run out."""

    def __init__(self, policy: RetryPolicy, *, on_failure: RetryHook | None = None) -> None:
        self._policy = policy
        self._on_failure = on_failure

    @property
    def max_attempts(self) -> int:
        return max(1, int(self._policy.max_attempts))

    def compute_delay(self, attempt: int) -> float:
        return self._policy.delay_ms(attempt) / 1000.0

    async def execute(self, func: Attempt[T], *args: Any, **kwargs: Any) -> T:
        """Call ``func`` until it returns; the error of the last attempt propagates."""
        if not callable(func):
            raise TypeError("func must be callable")

        attempt = 1
        while True:
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as exc:
                if self._on_failure is not None:
                    self._on_failure(attempt, exc)
                if attempt >= self.max_attempts:
                    raise
            pause = self.compute_delay(attempt)
            if pause > 0:
                await asyncio.sleep(pause)
            attempt += 1
