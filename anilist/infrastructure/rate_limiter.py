import asyncio
import logging
import math
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from anilist.domain.exceptions import RateLimitExceededException
from anilist.domain.models import RateBudget
from anilist.infrastructure.transport import RawResponse

logger = logging.getLogger(__name__)

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"


def _as_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class RateLimiter:
    """
    Admits requests against the AniList request budget.

    The budget is owned by one limiter instance and shared by reference with
    every pipeline that talks to the same credential. Callers are suspended
    until a slot frees up; a wait longer than `max_wait` fails instead.
    """

    def __init__(
        self,
        limit: int = 90,
        window: float = 60.0,
        max_wait: float = 120.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.window = window
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        # Admission times inside the current rolling window.
        self._sent: Deque[float] = deque()
        self.budget = RateBudget(limit=limit, remaining=limit, window_reset_at=clock() + window)

    def _expire(self, now: float) -> None:
        while self._sent and self._sent[0] <= now - self.window:
            self._sent.popleft()
        if self.budget.remaining <= 0 and now >= self.budget.window_reset_at:
            self.budget.remaining = self.budget.limit
            self.budget.window_reset_at = now + self.window

    def _wait_time(self, now: float) -> float:
        wait = 0.0
        if self.budget.remaining <= 0:
            wait = self.budget.window_reset_at - now
        if len(self._sent) >= self.budget.limit:
            wait = max(wait, self._sent[0] + self.window - now)
        return max(wait, 0.0)

    async def admit(self) -> None:
        """
        Waits for a request slot and consumes it.

        Raises:
            RateLimitExceededException: The next slot frees up later than `max_wait` seconds from now.
        """
        while True:
            async with self._lock:
                now = self._clock()
                self._expire(now)
                wait = self._wait_time(now)
                if wait <= 0:
                    self.budget.remaining -= 1
                    self._sent.append(now)
                    logger.debug(f"Request admitted. Remaining budget: {self.budget.remaining}/{self.budget.limit}.")
                    return
                if wait > self.max_wait:
                    raise RateLimitExceededException(
                        retry_after=wait,
                        message="Rate limit wait exceeds the configured maximum.",
                        status=None,
                    )

            logger.warning(f"Rate budget exhausted. Waiting {wait:.1f}s for the window to reset.")
            await self._sleep(wait)

    async def observe(self, response: RawResponse) -> None:
        """
        Overwrites the local budget with the values the service reported in the response headers.
        """
        limit = _as_number(response.header(LIMIT_HEADER))
        remaining = _as_number(response.header(REMAINING_HEADER))
        reset_at = _as_number(response.header(RESET_HEADER))

        async with self._lock:
            if limit is not None and limit >= 1:
                self.budget.limit = int(limit)
            if remaining is not None:
                self.budget.remaining = max(int(remaining), 0)
            if reset_at is not None:
                self.budget.window_reset_at = reset_at
            elif remaining is not None and self.budget.window_reset_at <= self._clock():
                self.budget.window_reset_at = self._clock() + self.window

    async def defer(self, retry_after: float) -> None:
        """
        Marks the budget as exhausted for `retry_after` seconds after a rejection by the service.
        """
        async with self._lock:
            self.budget.remaining = 0
            self.budget.window_reset_at = self._clock() + retry_after
