"""
Rate Limiting Module

Per-client request limiting for the public submission endpoint.

FixedWindowRateLimiter keeps its counters in process memory, so limits are
only enforced correctly when the service runs as a single instance. A
horizontally scaled deployment needs a RateLimiter backed by a shared store.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict


class RateLimitExceeded(Exception):
    """Client exceeded its request allowance for the current window"""

    def __init__(self, client_id: str, retry_after: float):
        super().__init__(f"Rate limit exceeded for {client_id}")
        self.client_id = client_id
        self.retry_after = retry_after


class RateLimiter(ABC):
    """Abstract per-client rate limiter"""

    @abstractmethod
    def allow(self, client_id: str) -> bool:
        """Record a request and report whether it is within the limit"""
        pass

    def check(self, client_id: str) -> None:
        """Like allow(), but raises RateLimitExceeded"""
        if not self.allow(client_id):
            raise RateLimitExceeded(client_id, self.retry_after(client_id))

    def retry_after(self, client_id: str) -> float:
        return 0.0


@dataclass
class _Window:
    count: int
    resets_at: float


class FixedWindowRateLimiter(RateLimiter):
    """At most max_requests per client in each window_seconds window"""

    def __init__(self, max_requests: int = 5, window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def allow(self, client_id: str) -> bool:
        now = self._clock()
        with self._lock:
            window = self._windows.get(client_id)
            if window is None or now >= window.resets_at:
                self._windows[client_id] = _Window(count=1, resets_at=now + self.window_seconds)
                self._evict_expired(now)
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def retry_after(self, client_id: str) -> float:
        with self._lock:
            window = self._windows.get(client_id)
            if window is None:
                return 0.0
            return max(0.0, window.resets_at - self._clock())

    def _evict_expired(self, now: float) -> None:
        expired = [cid for cid, w in self._windows.items() if now >= w.resets_at]
        for cid in expired:
            del self._windows[cid]
