"""Thread-safe token bucket used to throttle Synapse calls."""

import threading
import time
from typing import Callable


class RateLimiter:
    """Token bucket handing out ``permits`` per ``period_seconds``.

    The bucket starts full and refills continuously. ``acquire`` blocks the
    calling thread until a permit is available. One instance is shared by
    every worker that talks to the same endpoint.

    Attributes:
        permits: Bucket capacity and number of permits per period
        period_seconds: Length of the refill period

    Example:
        >>> general = RateLimiter.per_second(10)
        >>> column_models = RateLimiter.per_minute(24)
        >>> general.acquire()
    """

    def __init__(
        self,
        permits: float,
        period_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if permits <= 0:
            raise ValueError(f"permits must be positive, got {permits}")
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be positive, got {period_seconds}")
        self.permits = permits
        self.period_seconds = period_seconds
        self._rate = permits / period_seconds
        # Fractional rates still need room for one whole permit
        self._capacity = max(1.0, float(permits))
        self._clock = clock
        self._sleep = sleep
        self._tokens = self._capacity
        self._last_refill = clock()
        self._lock = threading.Lock()

    @classmethod
    def per_second(cls, permits: float) -> "RateLimiter":
        return cls(permits, 1.0)

    @classmethod
    def per_minute(cls, permits: float) -> "RateLimiter":
        return cls(permits, 60.0)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
            self._last_refill = now

    def try_acquire(self) -> bool:
        """Take a permit if one is available right now."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def acquire(self) -> None:
        """Block until a permit has been taken."""
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_seconds = (1.0 - self._tokens) / self._rate
            # sleep outside the lock so other threads can refill and compete
            self._sleep(wait_seconds)
