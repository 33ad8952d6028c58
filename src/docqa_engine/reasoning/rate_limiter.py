"""Process-wide sliding window rate limiter with provider backoff."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from docqa_engine.config.settings import Settings
from docqa_engine.exceptions import ProviderBackedOff, RateLimitExceeded
from docqa_engine.observability.logger import get_logger

logger = get_logger("rate_limiter")


class RateLimiter:
    """Tracks attempt timestamps within a sliding window, in-flight calls and
    the provider backoff deadline.

    One instance is shared by every request in the process. All state changes
    happen under a lock so check-then-increment cannot overshoot the ceilings.
    The clock returns epoch seconds and is injectable for tests.
    """

    def __init__(
        self,
        window_s: float = 60.0,
        max_requests: int = 15,
        max_concurrent: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._window_s = window_s
        self._max_requests = max_requests
        self._max_concurrent = max_concurrent
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._active = 0
        self._backoff_until = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Callable[[], float] = time.time
    ) -> RateLimiter:
        return cls(
            window_s=settings.rate_window_s,
            max_requests=settings.rate_max_requests,
            max_concurrent=settings.rate_max_concurrent,
            clock=clock,
        )

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_s
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def is_backed_off(self) -> bool:
        return self._clock() < self._backoff_until

    def can_make_request(self) -> bool:
        with self._lock:
            now = self._clock()
            self._prune(now)
            return not (
                now < self._backoff_until
                or len(self._timestamps) >= self._max_requests
                or self._active >= self._max_concurrent
            )

    def acquire(self) -> None:
        """Record an attempt and take an in-flight slot, or fail fast."""
        with self._lock:
            now = self._clock()
            if now < self._backoff_until:
                raise ProviderBackedOff(
                    f"Provider backed off for another {self._backoff_until - now:.1f}s"
                )
            self._prune(now)
            if len(self._timestamps) >= self._max_requests:
                raise RateLimitExceeded(
                    f"{self._max_requests} requests per {self._window_s:.0f}s window exhausted"
                )
            if self._active >= self._max_concurrent:
                raise RateLimitExceeded(
                    f"{self._max_concurrent} concurrent requests already in flight"
                )
            self._timestamps.append(now)
            self._active += 1

    def release(self) -> None:
        with self._lock:
            self._active = max(0, self._active - 1)

    @contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def set_backoff_until(self, deadline: float) -> None:
        """Extend the backoff deadline. An earlier deadline is a no-op."""
        with self._lock:
            if deadline > self._backoff_until:
                self._backoff_until = deadline
                logger.warning(
                    "provider_backoff_set",
                    backoff_s=round(deadline - self._clock(), 2),
                )

    def back_off_for(self, seconds: float) -> None:
        self.set_backoff_until(self._clock() + seconds)

    @property
    def backoff_until(self) -> float:
        return self._backoff_until

    @property
    def active(self) -> int:
        return self._active

    @property
    def window_count(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps)
