"""
SubText Backend — Per-User Sliding Window Rate Limiter
========================================================

What:  Caps how many OCR requests one authenticated identity may make in a
       trailing time window (default: 20 per hour).
Why:   Every accepted request may cost a vision-model call.
How:   Keeps a deque of accepted-request timestamps per identity. On each
       call, timestamps at least `window_seconds` old are dropped from the
       front; the request is accepted only if fewer than `max_requests`
       remain, and only accepted requests are recorded.

Limitations:
    State lives in process memory. It is lost on restart and is not shared
    between replicas, so N instances allow up to N × max_requests per window.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory sliding window limiter keyed by identity.

    Args:
        max_requests: Accepted requests allowed inside one window.
        window_seconds: Length of the trailing window.
        clock: Returns the current time in seconds (injectable for tests).
        sweep_every: Number of allow() calls between sweeps of idle identities.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 1000,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sweep_every = sweep_every
        self._calls = 0
        self._windows: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, window: Deque[float], now: float) -> None:
        # Timestamps are appended in order, so expired ones sit at the front
        while window and now - window[0] >= self.window_seconds:
            window.popleft()

    def allow(self, identity: str) -> bool:
        """
        Record and accept the request if the identity is under its limit.

        Returns:
            True if accepted (timestamp recorded), False if rejected
            (nothing recorded).
        """
        now = self._clock()
        window = self._windows[identity]
        self._prune(window, now)

        self._calls += 1
        if self._calls % self._sweep_every == 0:
            self._sweep_idle(now)

        if len(window) >= self.max_requests:
            logger.warning(
                "Rate limit exceeded for user %s: %d requests in %ss window",
                identity,
                len(window),
                self.window_seconds,
            )
            return False

        window.append(now)
        # The sweep may have dropped an identity whose deque was empty
        self._windows[identity] = window
        return True

    def retry_after(self, identity: str) -> int:
        """Whole seconds until the oldest recorded request leaves the window."""
        window = self._windows.get(identity)
        if not window:
            return 0
        remaining = window[0] + self.window_seconds - self._clock()
        return max(int(remaining) + 1, 1)

    def count(self, identity: str) -> int:
        """Number of accepted requests still inside the window."""
        window = self._windows.get(identity)
        if not window:
            return 0
        self._prune(window, self._clock())
        return len(window)

    def _sweep_idle(self, now: float) -> None:
        """Drop identities with no timestamps left in the window."""
        idle = []
        for identity, window in self._windows.items():
            self._prune(window, now)
            if not window:
                idle.append(identity)
        for identity in idle:
            del self._windows[identity]
        if idle:
            logger.debug("Swept %d idle rate-limit windows", len(idle))

    def __len__(self) -> int:
        return len(self._windows)
