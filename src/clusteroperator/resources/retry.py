"""Bounded exponential backoff for provider eventual consistency."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_delay,
    wait_exponential,
)

from clusteroperator.core.errors import ProviderError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Deadline and backoff bounds for a poll-until-success wait."""

    timeout: float = 120.0
    initial: float = 1.0
    maximum: float = 15.0

    def retrying(self, predicate: Callable[[BaseException], bool]) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(predicate),
            stop=stop_after_delay(self.timeout),
            wait=wait_exponential(multiplier=self.initial, max=self.maximum),
            reraise=False,
        )


async def poll_until(
    check: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[BaseException], bool],
    what: str,
    details: dict[str, Any] | None = None,
) -> T:
    """Call ``check`` until it stops raising a retryable error.

    Errors for which ``retry_on`` is False propagate immediately. When the
    deadline passes, the last error is chained to a ProviderError.
    """
    try:
        async for attempt in policy.retrying(retry_on):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "waiting_for_dependency",
                        dependency=what,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await check()
    except RetryError as exc:
        last = exc.last_attempt.exception()
        raise ProviderError(
            f"Timed out after {policy.timeout}s waiting for {what}",
            details={**(details or {}), "timeout": policy.timeout},
        ) from last
    raise AssertionError("unreachable")  # pragma: no cover
