"""Adaptive wait for the visible page to stop changing.

Instead of trusting a fixed delay after each page turn, the detector polls a
cheap low-quality screenshot and compares a coarse signature (byte length
plus five sampled bytes) with the previous one. This is a heuristic, not a
visual-equality check: two different renders can share a signature, and a
real perceptual hash can replace :func:`compute_signature` without changing
the detector's contract (equal signatures mean "presumed stable").
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

_SAMPLE_POSITIONS = (0.0, 0.25, 0.5, 0.75)


def compute_signature(data: bytes) -> str:
    """Return ``"<len>-<b0>-<b25>-<b50>-<b75>-<last>"`` for *data*."""
    length = len(data)
    if length == 0:
        return "0-0-0-0-0-0"
    samples = [data[int(length * pos)] for pos in _SAMPLE_POSITIONS]
    samples.append(data[-1])
    return f"{length}-" + "-".join(str(s) for s in samples)


class StabilityDetector:
    """Poll a page until consecutive coarse signatures stop changing.

    Args:
        timeout: Overall ceiling in seconds; the wait gives up after this.
        base_interval: Initial (and post-change) polling interval in seconds.
        max_interval: Cap for the interval while the page looks stable.
        growth: Factor applied to the interval after each matching poll.
        required_matches: Consecutive matching polls that mean "stable".
    """

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        base_interval: float = 0.3,
        max_interval: float = 0.8,
        growth: float = 1.3,
        required_matches: int = 2,
    ) -> None:
        self.timeout = timeout
        self.base_interval = base_interval
        self.max_interval = max_interval
        self.growth = growth
        self.required_matches = required_matches

    async def wait_for_stable(
        self,
        grab: Callable[[], Awaitable[bytes]],
        is_active: Callable[[], bool] = lambda: True,
    ) -> bool:
        """Wait until the surface is presumed stable.

        Args:
            grab: Coroutine factory returning a low-fidelity screenshot.
            is_active: Cancellation check; polled every iteration.

        Returns:
            True when stability was detected, False on timeout or cancellation.
            Capture proceeds either way; the caller only uses this for logging.
        """
        deadline = time.monotonic() + self.timeout
        previous: str | None = None
        matches = 0
        interval = self.base_interval

        while time.monotonic() < deadline:
            if not is_active():
                return False

            try:
                signature = compute_signature(await grab())
            except Exception as exc:
                logger.debug("Stability probe failed, continuing: %s", exc)
            else:
                if previous is not None and signature == previous:
                    matches += 1
                    if matches >= self.required_matches:
                        return True
                    interval = min(interval * self.growth, self.max_interval)
                else:
                    matches = 0
                    interval = self.base_interval
                previous = signature

            await asyncio.sleep(interval)

        logger.warning("Screen did not stabilize within %.1fs; capturing anyway", self.timeout)
        return False
