"""Minimum-interval rate limiting for message sends."""

import time
from collections.abc import Callable

from ..config import RATE_LIMIT_MS


class RateLimiter:
    """Minimum-interval limiter keyed on the last accepted call.

    Owned by a single session; not safe to share across threads.
    """

    def __init__(
        self,
        min_interval_ms: int = RATE_LIMIT_MS,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the limiter.

        Args:
            min_interval_ms: Minimum gap between accepted calls
            clock: Returns the current time in seconds
        """
        self._min_interval = min_interval_ms / 1000
        self._clock = clock
        self._last_accepted: float | None = None

    def try_acquire(self) -> bool:
        """Accept the call and record it, or reject it if too soon."""
        now = self._clock()
        if self._last_accepted is not None and now - self._last_accepted < self._min_interval:
            return False
        self._last_accepted = now
        return True

    def reset(self) -> None:
        """Forget the last accepted call."""
        self._last_accepted = None
