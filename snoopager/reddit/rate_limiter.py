"""
Rate limit gate for Reddit OAuth requests.

Tracks the server-reported rate window (x-ratelimit-* headers), enforces a
minimum spacing between dispatched requests and computes the exponential
backoff used between retries.
"""

import asyncio
import math
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import structlog

from snoopager.reddit.exceptions import RateLimitExceeded

logger = structlog.get_logger(__name__)


@dataclass
class RateWindow:
    """
    Remaining-request count and reset instant reported by the server.

    Both fields stay None until the first response carrying rate limit
    headers has been seen.
    """

    remaining: Optional[float] = None
    reset_at: Optional[float] = None

    def seconds_until_reset(self, now: float) -> float:
        if self.reset_at is None:
            return 0.0
        return max(0.0, self.reset_at - now)

    def is_exhausted(self, now: float) -> bool:
        return (
            self.remaining is not None
            and self.remaining < 1
            and self.reset_at is not None
            and now < self.reset_at
        )


class RateLimitGate:
    """
    Gate every request passes through before it is dispatched.

    - If the server's window is exhausted, either waits for the reset
      (continue_after_ratelimit_error=True) or raises RateLimitExceeded.
    - If request_delay is set, each caller reserves the next dispatch slot
      so bursts of concurrent calls leave evenly spaced.

    The clock and sleep functions are injectable so scheduling can be tested
    without real waiting.
    """

    def __init__(
        self,
        request_delay: float = 0.0,
        continue_after_ratelimit_error: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the rate limit gate.

        Args:
            request_delay: Minimum spacing in seconds between dispatches
            continue_after_ratelimit_error: Queue instead of raising when the
                window is exhausted
            clock: Monotonic clock returning seconds
            sleep: Coroutine function used for every wait
        """
        self.request_delay = request_delay
        self.continue_after_ratelimit_error = continue_after_ratelimit_error
        self.window = RateWindow()
        self._clock = clock
        self._sleep = sleep
        self._next_request_at = -math.inf

        logger.debug(
            "rate_gate_initialized",
            request_delay=request_delay,
            continue_after_ratelimit_error=continue_after_ratelimit_error,
        )

    async def acquire(self, endpoint: Optional[str] = None) -> None:
        """
        Wait until a request may be dispatched.

        Args:
            endpoint: URI of the pending request, for error context

        Raises:
            RateLimitExceeded: If the window is exhausted and queueing is disabled

        Example:
            >>> gate = RateLimitGate(request_delay=1.0)
            >>> await gate.acquire()  # Returns immediately for the first call
        """
        await self._await_ratelimit(endpoint)
        await self._await_request_delay()

    async def _await_ratelimit(self, endpoint: Optional[str]) -> None:
        now = self._clock()
        if not self.window.is_exhausted(now):
            return

        wait_time = self.window.seconds_until_reset(now)

        if not self.continue_after_ratelimit_error:
            logger.warning(
                "rate_limit_hit",
                remaining=self.window.remaining,
                wait_seconds=round(wait_time, 2),
                endpoint=endpoint,
            )
            raise RateLimitExceeded(retry_after=wait_time, endpoint=endpoint)

        logger.warning(
            "rate_limit_queued",
            wait_seconds=round(wait_time, 2),
            endpoint=endpoint,
        )
        await self._sleep(wait_time)

    async def _await_request_delay(self) -> None:
        if self.request_delay <= 0:
            return

        # Read and reserve without yielding in between, so concurrent callers
        # each get their own slot.
        now = self._clock()
        wait_time = self._next_request_at - now
        self._next_request_at = max(now, self._next_request_at) + self.request_delay

        if wait_time > 0:
            logger.debug("request_delayed", wait_seconds=round(wait_time, 3))
            await self._sleep(wait_time)

    @staticmethod
    def backoff_delay(attempt: int) -> float:
        """
        Seconds to wait before the given attempt.

        The first attempt is never delayed. Later attempts wait about
        2**(attempt - 1) seconds with jitter skewed slightly negative.

        Example:
            >>> RateLimitGate.backoff_delay(1)
            0.0
            >>> 1.7 <= RateLimitGate.backoff_delay(2) < 2.7
            True
        """
        if attempt <= 1:
            return 0.0
        return max(0.0, 2 ** (attempt - 1) + random.random() - 0.3)

    async def backoff(self, attempt: int) -> None:
        """Sleep for the exponential backoff preceding `attempt`."""
        delay = self.backoff_delay(attempt)
        if delay > 0:
            logger.debug("backoff_wait", attempt=attempt, wait_seconds=round(delay, 2))
            await self._sleep(delay)

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """
        Update the rate window from a response's rate limit headers.

        Responses without `x-ratelimit-remaining` leave the window untouched.

        Args:
            headers: Response headers (case-insensitive mapping)
        """
        remaining = headers.get("x-ratelimit-remaining")
        if remaining is None:
            return

        try:
            self.window.remaining = float(remaining)
            self.window.reset_at = self._clock() + float(headers.get("x-ratelimit-reset", 0))
        except ValueError:
            logger.warning(
                "rate_limit_headers_unparseable",
                remaining=remaining,
                reset=headers.get("x-ratelimit-reset"),
            )
            return

        if self.window.remaining < 10:
            logger.warning(
                "rate_limit_approaching",
                remaining=self.window.remaining,
                reset_seconds=headers.get("x-ratelimit-reset"),
            )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get current gate statistics.

        Returns:
            Dictionary with the window state and dispatch scheduling info

        Example:
            >>> gate.get_stats()
            {'remaining': 598.0, 'seconds_until_reset': 421.3, 'request_delay': 0.0, ...}
        """
        now = self._clock()
        return {
            "remaining": self.window.remaining,
            "seconds_until_reset": round(self.window.seconds_until_reset(now), 2),
            "exhausted": self.window.is_exhausted(now),
            "request_delay": self.request_delay,
            "next_slot_in": round(max(0.0, self._next_request_at - now), 3),
        }
