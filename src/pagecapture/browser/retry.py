"""Bounded fixed-delay retry for fallible browser automation calls.

Every screenshot, page advance and browser launch goes through
:func:`retry_async` so that a single flaky CDP round-trip does not abort a
capture run.

Usage::

    from pagecapture.browser.retry import retry_async

    image = await retry_async(lambda: page.screenshot(), attempts=3, delay=1.0)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[int, Exception], Any]


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 1.0,
    on_retry: RetryObserver | None = None,
) -> T:
    """Invoke *operation* up to *attempts* times with a constant *delay* between tries.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        attempts: Maximum number of invocations (>= 1).
        delay: Seconds to wait after a failed attempt. Constant, no backoff.
        on_retry: Optional observer called as ``on_retry(attempt, exc)`` after
            each failed attempt that will be retried. May be sync or async.
            Its errors are logged and otherwise ignored.

    Returns:
        The first successful result.

    Raises:
        ValueError: If *attempts* is less than 1.
        Exception: The last error raised by *operation* once all attempts fail.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts:
                raise
            logger.debug("Attempt %d/%d failed: %s", attempt, attempts, exc)
            if on_retry is not None:
                await _notify(on_retry, attempt, exc)
            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or re-raises
    raise RuntimeError("retry_async exhausted without result")


async def _notify(observer: RetryObserver, attempt: int, exc: Exception) -> None:
    try:
        result = observer(attempt, exc)
        if inspect.isawaitable(result):
            await result
    except Exception as obs_exc:
        logger.warning("Retry observer raised (ignored): %s", obs_exc)
