"""
Client-side rate limiting for explorer calls.
"""

import time
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket limiter.

    Tokens refill continuously at `rate` per second up to `capacity`.
    `acquire()` blocks until a token is available, `try_acquire()` never
    blocks. Clock and sleep are injectable so the policy can be tested
    without waiting.
    """

    def __init__(self, rate: float, capacity: int = 1,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    @property
    def available(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def try_acquire(self) -> bool:
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def acquire(self) -> float:
        """Take one token, sleeping as needed. Returns the time waited."""
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return waited
                delay = (1 - self._tokens) / self.rate
            logger.debug(f"Rate limiter waiting {delay:.2f}s")
            self._sleep(delay)
            waited += delay
