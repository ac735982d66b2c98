"""
Rate limiting module for shipledger.

Provides sliding window rate limiting with per-key tracking.
"""

import time
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    retry_after: float = 0.0


class RateLimiter:
    """
    Sliding window rate limiter.

    Thread-safe implementation using deques for efficient
    sliding window tracking.
    """

    def __init__(self, rpm: int, window_seconds: int = 60):
        """
        Initialize rate limiter.

        Args:
            rpm: Maximum requests per minute (or per window)
            window_seconds: Window size in seconds (default 60)
        """
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._hits: Dict[str, deque] = defaultdict(deque)
        self._lock = threading.RLock()

    def check(self, key: str) -> RateLimitResult:
        """
        Check rate limit and return detailed result.

        Args:
            key: Identifier for rate limiting (actor identity)

        Returns:
            RateLimitResult; retry_after is the wait in seconds when refused
        """
        now = time.time()
        window_start = now - self._window

        with self._lock:
            q = self._hits[key]

            while q and q[0] < window_start:
                q.popleft()

            if len(q) >= self._limit:
                retry_after = q[0] + self._window - now
                return RateLimitResult(allowed=False, retry_after=max(0.0, retry_after))

            q.append(now)
            return RateLimitResult(allowed=True)

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset rate limit counters.

        Args:
            key: Specific key to reset, or None to reset all
        """
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()
