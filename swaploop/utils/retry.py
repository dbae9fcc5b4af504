"""Polling utilities for external APIs."""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)


class PollTimeout(Exception):
    """Condition not met before the deadline."""

    def __init__(self, message: str, last_result: Any = None):
        super().__init__(message)
        self.last_result = last_result


async def poll_until(
    fetch: Callable[[], Awaitable[Any]],
    done: Callable[[Any], bool],
    timeout: float,
    interval: float = 1.0,
) -> Any:
    """Call `fetch` every `interval` seconds until `done(result)` is true.

    Exceptions raised by `fetch` propagate immediately; callers that want a
    failed fetch to count as "not done yet" should handle that inside fetch.

    Raises:
        PollTimeout: `timeout` seconds elapsed without `done` returning true.
    """
    retrying = AsyncRetrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda result: not done(result)),
    )

    # AsyncRetrying only awaits coroutine functions, not lambdas returning one.
    async def _attempt() -> Any:
        return await fetch()

    try:
        return await retrying(_attempt)
    except RetryError as e:
        last = e.last_attempt.result() if not e.last_attempt.failed else None
        raise PollTimeout(f"condition not met after {timeout:.0f}s", last_result=last) from None
