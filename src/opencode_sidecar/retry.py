"""Bounded retry around downstream service calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from loguru import logger

from opencode_sidecar.envelope import unwrap_data

Operation: TypeAlias = Callable[..., Awaitable[Any]]
Sleep: TypeAlias = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay schedule for one call site."""

    max_retries: int = 3
    delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay after the failed attempt with zero-based index ``attempt``."""
        return self.delay_seconds * self.backoff_multiplier**attempt

    def schedule(self) -> list[float]:
        return [self.delay_for(attempt) for attempt in range(self.max_retries)]


DEFAULT_POLICY = RetryPolicy()
STARTUP_PROBE_POLICY = RetryPolicy(max_retries=9, delay_seconds=0.25, backoff_multiplier=1.0)
SINGLE_ATTEMPT_POLICY = RetryPolicy(max_retries=0, delay_seconds=0.0, backoff_multiplier=1.0)


class RetryingClient:
    """Run downstream operations with retries and envelope unwrapping."""

    def __init__(self, policy: RetryPolicy = DEFAULT_POLICY, *, sleep: Sleep = asyncio.sleep) -> None:
        self.policy = policy
        self._sleep = sleep

    async def call(self, operation: Operation, *args: Any, policy: RetryPolicy | None = None, **kwargs: Any) -> Any:
        """Invoke ``operation`` and return its unwrapped ``data``.

        Error envelopes raise inside the attempt and are retried like any
        other failure; the last error propagates once the budget is spent.
        """

        policy = policy or self.policy
        name = getattr(operation, "__name__", repr(operation))
        attempt = 0
        while True:
            try:
                return unwrap_data(await operation(*args, **kwargs))
            except Exception as exc:
                if attempt >= policy.max_retries:
                    logger.warning(
                        "sidecar.retry.exhausted operation={} attempts={} error={}", name, attempt + 1, exc
                    )
                    raise
                delay = policy.delay_for(attempt)
                logger.debug(
                    "sidecar.retry operation={} attempt={} delay={:.2f}s error={}", name, attempt + 1, delay, exc
                )
            await self._sleep(delay)
            attempt += 1
