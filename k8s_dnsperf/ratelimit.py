"""Token bucket used to pace control plane requests."""

import threading
import time
from typing import Callable, Optional


class RateLimitTimeout(Exception):
    """A token could not be acquired before the timeout."""


class TokenBucket:
    """Thread-safe token bucket allowing `rate` acquisitions per second with bursts of `burst`."""

    def __init__(self, rate: float, burst: int,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")
        self.rate = float(rate)
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        # Waiters queue up on this lock, one sleeping at a time
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.burst, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    def wait(self, timeout: Optional[float] = None, deadline: Optional[float] = None) -> None:
        """Block until a token is available and consume it.

        timeout is relative to the call, deadline is absolute on the bucket's
        clock. Time spent queued behind other waiters counts against both.

        Raises:
            RateLimitTimeout: the token would only become available after the deadline.
        """
        if timeout is not None:
            expiry = self._clock() + timeout
            deadline = expiry if deadline is None else min(deadline, expiry)
        with self._lock:
            self._refill()
            if self._tokens < 1:
                delay = (1 - self._tokens) / self.rate
                if deadline is not None and self._updated + delay > deadline:
                    raise RateLimitTimeout(f"token available in {delay:.3f}s, "
                                           f"deadline is in {deadline - self._updated:.3f}s")
                self._sleep(delay)
                self._refill()
            self._tokens -= 1
